"""Persistent storage of executed-query logs in SQLite."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import aiosqlite

LOGS_PER_PAGE = 256

# Space taken by the fields of a logs page other than the logs themselves.
_PAGE_OVERHEAD = 10
# Each record in a page is prefixed with two bytes of metadata.
_RECORD_OVERHEAD = 2

_SCHEMA = """
CREATE TABLE IF NOT EXISTS query_logs_v2(query_id TEXT PRIMARY KEY, timestamp INTEGER, log_msg BLOB);
CREATE INDEX IF NOT EXISTS idx_query_logs_v2_timestamp_query_id ON query_logs_v2(timestamp, query_id);
"""

_SELECT = """
SELECT log_msg, query_id
FROM query_logs_v2
WHERE (timestamp, query_id) > (:from_timestamp, IFNULL(:from_query_id, ''))
    AND timestamp <= :to_timestamp
ORDER BY timestamp, query_id
"""


@dataclass
class QueryLogs:
    """A page of encoded query logs and whether more are left."""

    queries_executed: List[bytes] = field(default_factory=list)
    has_more: bool = False


class LogsStorage:
    """Stores encoded query logs keyed by query id and timestamp (ms)."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    @classmethod
    async def open(cls, logs_path: str) -> "LogsStorage":
        """Open (creating if needed) the logs database at ``logs_path``."""
        db = await aiosqlite.connect(logs_path, isolation_level=None)
        await db.executescript("BEGIN;" + _SCHEMA + "COMMIT;")
        return cls(db)

    async def save_log(self, query_id: str, timestamp_ms: int, log_msg: bytes) -> None:
        await self._db.execute(
            "INSERT INTO query_logs_v2(query_id, timestamp, log_msg) VALUES(?, ?, ?)",
            (query_id, timestamp_ms, bytes(log_msg)),
        )

    async def get_logs(
        self,
        from_timestamp_ms: int,
        to_timestamp_ms: int,
        from_query_id: Optional[str],
        max_bytes: int,
    ) -> QueryLogs:
        """Logs in the range ordered by timestamp, then query id.

        With ``from_query_id``, logs at exactly ``from_timestamp_ms`` are only
        returned if their id sorts after it. The page stops before exceeding
        ``max_bytes``.
        """
        params = {
            "from_timestamp": from_timestamp_ms,
            "from_query_id": from_query_id,
            "to_timestamp": to_timestamp_ms,
        }
        total_len = _PAGE_OVERHEAD
        logs: List[bytes] = []
        async with self._db.execute(_SELECT, params) as cursor:
            async for log_msg, _query_id in cursor:
                total_len += len(log_msg) + _RECORD_OVERHEAD
                if total_len > max_bytes:
                    return QueryLogs(logs, has_more=True)
                logs.append(bytes(log_msg))
        return QueryLogs(logs, has_more=False)

    async def cleanup(self, until: int) -> None:
        """Delete logs older than ``until`` (ms) and compact the database."""
        await self._db.execute("DELETE FROM query_logs_v2 WHERE timestamp < ?", (until,))
        await self._db.execute("VACUUM")

    async def close(self) -> None:
        await self._db.close()

    async def __aenter__(self) -> "LogsStorage":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()