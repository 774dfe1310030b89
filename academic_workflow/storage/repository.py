"""
Repository pattern for the usage ledger.

Handles database operations for routed generation events.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .models import UsageEvent

_COLUMNS = (
    "timestamp, provider, model, task_type, input_tokens, output_tokens, "
    "total_tokens, cost, attempt_count, request_id"
)


def _row_to_event(row) -> UsageEvent:
    return UsageEvent(
        timestamp=datetime.fromisoformat(row[0]),
        provider=row[1],
        model=row[2],
        task_type=row[3],
        input_tokens=row[4],
        output_tokens=row[5],
        total_tokens=row[6],
        cost=row[7],
        attempt_count=row[8],
        request_id=row[9]
    )


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the usage_event table if it doesn't exist.

    This creates an append-only ledger for immutable usage events.
    No UPDATE or DELETE operations should ever be performed on this table.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS usage_event (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                provider TEXT NOT NULL,
                model TEXT NOT NULL,
                task_type TEXT NOT NULL,
                input_tokens INTEGER NOT NULL,
                output_tokens INTEGER NOT NULL,
                total_tokens INTEGER NOT NULL,
                cost REAL NOT NULL,
                attempt_count INTEGER NOT NULL DEFAULT 1,
                request_id TEXT
            )
        """)
        conn.commit()
    finally:
        conn.close()


def insert_usage_event(event: UsageEvent, db_path: str = DEFAULT_DB_PATH) -> None:
    """Insert a single usage event into the append-only ledger.

    Args:
        event: The usage event to record
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute(f"""
            INSERT INTO usage_event ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            event.timestamp.isoformat(),
            event.provider,
            event.model,
            event.task_type,
            event.input_tokens,
            event.output_tokens,
            event.total_tokens,
            event.cost,
            event.attempt_count,
            event.request_id
        ))
        conn.commit()
    finally:
        conn.close()


class UsageLedger:
    """Read/write access to the usage ledger.

    The router appends one event per successful call; the CLI reads
    totals back for reporting.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

    def initialize(self) -> None:
        initialize_schema(self.db_path)

    def record(self, event: UsageEvent) -> None:
        insert_usage_event(event, self.db_path)

    def recent_events(
        self,
        provider: Optional[str] = None,
        days: Optional[int] = None,
        limit: int = 100
    ) -> List[UsageEvent]:
        """Get recent usage events with optional filtering.

        Args:
            provider: Optional filter for a specific provider
            days: Optional number of days to look back
            limit: Maximum number of events to return

        Returns:
            List of usage events ordered by timestamp (newest first)
        """
        conn = get_connection(self.db_path)
        try:
            query = f"SELECT {_COLUMNS} FROM usage_event"
            params: list = []
            conditions = []

            if provider:
                conditions.append("provider = ?")
                params.append(provider)
            if days is not None:
                cutoff = (datetime.now() - timedelta(days=days)).isoformat()
                conditions.append("timestamp >= ?")
                params.append(cutoff)

            if conditions:
                query += " WHERE " + " AND ".join(conditions)

            query += " ORDER BY timestamp DESC LIMIT ?"
            params.append(limit)

            cursor = conn.execute(query, params)
            return [_row_to_event(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def totals_by_provider(self, since: Optional[datetime] = None) -> Dict[str, Dict[str, float]]:
        """Aggregate requests, tokens and cost per provider.

        Args:
            since: Optional lower bound on event timestamps

        Returns:
            Mapping of provider to its totals
        """
        conn = get_connection(self.db_path)
        try:
            query = """
                SELECT
                    provider,
                    COUNT(*) as total_requests,
                    SUM(total_tokens) as total_tokens,
                    SUM(cost) as total_cost
                FROM usage_event
            """
            params: list = []
            if since is not None:
                query += " WHERE timestamp >= ?"
                params.append(since.isoformat())
            query += " GROUP BY provider ORDER BY provider"

            totals = {}
            for row in conn.execute(query, params).fetchall():
                totals[row[0]] = {
                    "total_requests": row[1] or 0,
                    "total_tokens": row[2] or 0,
                    "total_cost": float(row[3] or 0),
                }
            return totals
        finally:
            conn.close()

    def month_to_date_cost(self, now: Optional[datetime] = None) -> float:
        """Total spend recorded since the start of the current month."""
        now = now or datetime.now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        totals = self.totals_by_provider(since=month_start)
        return sum(t["total_cost"] for t in totals.values())
