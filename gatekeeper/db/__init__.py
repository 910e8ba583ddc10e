"""Database package for the SQL store."""

from gatekeeper.db.database import make_engine
from gatekeeper.db.models import ChannelTables, build_tables

__all__ = ["make_engine", "ChannelTables", "build_tables"]
