"""
Table definitions for the SQL store.

Each channel gets its own pair of tables, ``<channel>_log`` for counter
records and ``<channel>_rule`` for verdicts, so several sites can share one
database.
"""

import re
from dataclasses import dataclass

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text

_CHANNEL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,40}$")


@dataclass(frozen=True)
class ChannelTables:
    log: Table
    rule: Table


def build_tables(metadata: MetaData, channel: str) -> ChannelTables:
    """Define (or fetch, if already defined) the tables for a channel."""
    if not _CHANNEL_RE.match(channel):
        raise ValueError(f"Invalid channel name: {channel!r}")

    log_name = f"{channel}_log"
    rule_name = f"{channel}_rule"

    if log_name in metadata.tables:
        return ChannelTables(log=metadata.tables[log_name], rule=metadata.tables[rule_name])

    log = Table(
        log_name,
        metadata,
        Column("log_ip", String(46), primary_key=True),
        Column("log_data", Text, nullable=False),
    )

    rule = Table(
        rule_name,
        metadata,
        Column("log_ip", String(46), primary_key=True),
        Column("ip_resolve", String(255), nullable=False, default=""),
        Column("type", Integer, nullable=False),
        Column("reason", Integer, nullable=False),
        Column("time", Integer, nullable=False),
        Index(f"idx_{rule_name}_type", "type"),
    )

    return ChannelTables(log=log, rule=rule)
