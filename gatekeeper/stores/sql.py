"""
SQL store built on SQLAlchemy Core.

Counter records are kept as a JSON blob per IP; rules get real columns so
they can be queried and edited by hand.
"""

import json
import logging
import threading
from typing import Any, Optional

from sqlalchemy import MetaData, delete, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from gatekeeper.db import ChannelTables, build_tables, make_engine
from gatekeeper.security.codes import RecordKind
from gatekeeper.security.errors import StoreError

logger = logging.getLogger(__name__)

RULE_COLUMNS = ("ip_resolve", "type", "reason", "time")


class SqlStore:
    """
    Store backed by any database SQLAlchemy supports.

    ``init(True)`` creates the tables for the current channel the first time
    it is called and is a no-op afterwards.
    """

    def __init__(self, engine: Optional[Engine] = None, channel: str = "gatekeeper"):
        self.engine = engine or make_engine()
        self._metadata = MetaData()
        self._initialized: set[str] = set()
        self._init_lock = threading.Lock()
        self.set_channel(channel)

    def set_channel(self, channel: str) -> None:
        self._tables: ChannelTables = build_tables(self._metadata, channel)
        self.channel = channel

    def init(self, create_schema: bool) -> None:
        if not create_schema or self.channel in self._initialized:
            return
        with self._init_lock:
            if self.channel in self._initialized:
                return
            try:
                self._metadata.create_all(
                    self.engine,
                    tables=[self._tables.log, self._tables.rule],
                    checkfirst=True,
                )
            except SQLAlchemyError as e:
                raise StoreError(f"Could not create tables for channel {self.channel}: {e}") from e
            self._initialized.add(self.channel)
            logger.info(f"Created store tables for channel {self.channel}")

    def get(self, ip: str, kind: str) -> dict[str, Any]:
        kind = RecordKind(kind)
        table = self._table(kind)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(select(table).where(table.c.log_ip == ip)).mappings().first()
        except SQLAlchemyError as e:
            raise StoreError(f"Read failed: {e}", ip=ip, kind=kind.value) from e

        if row is None:
            return {}
        if kind == RecordKind.LOG:
            try:
                return json.loads(row["log_data"])
            except ValueError as e:
                raise StoreError(f"Corrupt log data: {e}", ip=ip, kind=kind.value) from e
        return dict(row)

    def save(self, ip: str, data: dict[str, Any], kind: str) -> None:
        kind = RecordKind(kind)
        table = self._table(kind)
        if kind == RecordKind.LOG:
            values = {"log_data": json.dumps(data)}
        else:
            values = {column: data[column] for column in RULE_COLUMNS if column in data}

        try:
            with self.engine.begin() as conn:
                result = conn.execute(update(table).where(table.c.log_ip == ip).values(**values))
                if result.rowcount == 0:
                    conn.execute(insert(table).values(log_ip=ip, **values))
        except SQLAlchemyError as e:
            raise StoreError(f"Write failed: {e}", ip=ip, kind=kind.value) from e

    def delete(self, ip: str, kind: str) -> None:
        kind = RecordKind(kind)
        table = self._table(kind)
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(table).where(table.c.log_ip == ip))
        except SQLAlchemyError as e:
            raise StoreError(f"Delete failed: {e}", ip=ip, kind=kind.value) from e

    def _table(self, kind: RecordKind):
        return self._tables.log if kind == RecordKind.LOG else self._tables.rule

    def close(self) -> None:
        self.engine.dispose()
