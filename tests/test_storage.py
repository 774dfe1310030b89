"""
Unit tests for storage layer.

Tests schema creation, event insertion, and aggregation over the usage ledger.
"""

import os
import tempfile
from datetime import datetime

import pytest

from academic_workflow.storage.db import get_connection
from academic_workflow.storage.models import UsageEvent
from academic_workflow.storage.repository import UsageLedger, initialize_schema, insert_usage_event


def make_event(timestamp, provider="openai", cost=0.00125, **kwargs):
    defaults = dict(
        model=f"{provider}-model",
        task_type="research",
        input_tokens=100,
        output_tokens=50,
        total_tokens=150,
    )
    defaults.update(kwargs)
    return UsageEvent(timestamp=timestamp, provider=provider, cost=cost, **defaults)


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify table is created correctly."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute("""
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name='usage_event'
                """)
                assert len(cursor.fetchall()) == 1

                columns = [row[1] for row in conn.execute("PRAGMA table_info(usage_event)")]
                assert "attempt_count" in columns
                assert "request_id" in columns
            finally:
                conn.close()

    def test_schema_creation_is_idempotent(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "nested", "test.db")
            initialize_schema(db_path)
            initialize_schema(db_path)

            assert os.path.exists(db_path)


class TestUsageLedger:
    """Test ledger writes and reads."""

    def setup_method(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.db")
        self.ledger = UsageLedger(self.db_path)
        self.ledger.initialize()

    def teardown_method(self):
        self.temp_dir.cleanup()

    def test_roundtrip_event(self):
        event = make_event(datetime(2024, 5, 1, 9, 30), attempt_count=2, request_id="req-1")
        self.ledger.record(event)

        assert self.ledger.recent_events() == [event]

    def test_recent_events_newest_first_and_filtered(self):
        self.ledger.record(make_event(datetime(2024, 5, 1), provider="openai"))
        self.ledger.record(make_event(datetime(2024, 5, 3), provider="anthropic"))
        insert_usage_event(make_event(datetime(2024, 5, 2), provider="openai"), self.db_path)

        events = self.ledger.recent_events()
        assert [e.timestamp.day for e in events] == [3, 2, 1]

        openai_events = self.ledger.recent_events(provider="openai", limit=1)
        assert len(openai_events) == 1
        assert openai_events[0].timestamp == datetime(2024, 5, 2)

    def test_totals_by_provider(self):
        self.ledger.record(make_event(datetime(2024, 5, 1), provider="openai", cost=0.5))
        self.ledger.record(make_event(datetime(2024, 5, 2), provider="openai", cost=0.25))
        self.ledger.record(make_event(datetime(2024, 5, 2), provider="anthropic", cost=0.1))

        totals = self.ledger.totals_by_provider()

        assert totals["openai"]["total_requests"] == 2
        assert totals["openai"]["total_tokens"] == 300
        assert totals["openai"]["total_cost"] == pytest.approx(0.75)
        assert totals["anthropic"]["total_requests"] == 1

    def test_month_to_date_cost(self):
        self.ledger.record(make_event(datetime(2024, 4, 30, 23, 59), cost=5.0))
        self.ledger.record(make_event(datetime(2024, 5, 1, 0, 0), cost=1.0))
        self.ledger.record(make_event(datetime(2024, 5, 20), cost=2.0))

        assert self.ledger.month_to_date_cost(now=datetime(2024, 5, 25)) == pytest.approx(3.0)

    def test_empty_ledger(self):
        assert self.ledger.totals_by_provider() == {}
        assert self.ledger.month_to_date_cost() == 0.0
