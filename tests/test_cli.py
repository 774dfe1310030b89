"""
Tests for the CLI interface.
"""

import json
import os
import shutil
import tempfile
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from academic_workflow.cli.main import EXIT_CODE_FAIL, EXIT_CODE_PASS, app
from academic_workflow.core.errors import BudgetExceeded
from academic_workflow.core.router import GenerationResult
from academic_workflow.core.token_counter import TokenUsage
from academic_workflow.references.models import Reference
from academic_workflow.references.reconciler import ReferenceReconciler
from academic_workflow.references.store import InMemoryStore
from academic_workflow.search import SearchResult
from academic_workflow.storage.models import UsageEvent
from academic_workflow.storage.repository import UsageLedger

runner = CliRunner()


@pytest.fixture
def workspace():
    """Temporary directory holding the ledger and input files."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def env(workspace):
    """Environment with one provider key and no Zotero credentials."""
    return {
        "OPENAI_API_KEY": "sk-test",
        "ANTHROPIC_API_KEY": None,
        "AI_MONTHLY_BUDGET": None,
        "ZOTERO_API_KEY": None,
        "ZOTERO_USER_ID": None,
        "ACADEMIC_WORKFLOW_DB": os.path.join(workspace, "usage.db"),
    }


@pytest.fixture
def mock_router():
    with patch('academic_workflow.cli.main.create_router') as mock_create:
        router = MagicMock()
        mock_create.return_value = router
        yield router


class TestStatusAndInit:
    """Test setup commands."""

    def test_status(self, env):
        result = runner.invoke(app, ["status"], env=env)

        assert result.exit_code == EXIT_CODE_PASS
        assert "openai" in result.output
        assert "Zotero credentials missing" in result.output

    def test_status_without_keys(self, env):
        env["OPENAI_API_KEY"] = None

        result = runner.invoke(app, ["status"], env=env)

        assert result.exit_code == EXIT_CODE_FAIL
        assert "No AI provider API key configured" in result.output

    def test_init(self, env):
        result = runner.invoke(app, ["init"], env=env)

        assert result.exit_code == EXIT_CODE_PASS
        assert "Database initialized successfully" in result.output
        assert os.path.exists(env["ACADEMIC_WORKFLOW_DB"])

    def test_bad_config_file(self, env, workspace):
        result = runner.invoke(app, ["--config", os.path.join(workspace, "nope.yaml"), "status"], env=env)

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Configuration error" in result.output


class TestGenerate:
    """Test routed generation from the command line."""

    def test_generate(self, env, mock_router):
        mock_router.generate_with_failover.return_value = GenerationResult(
            content="An outline",
            usage=TokenUsage(100, 50),
            cost=0.00125,
            provider="openai"
        )

        result = runner.invoke(app, ["generate", "Outline my thesis", "--task", "outline"], env=env)

        assert result.exit_code == EXIT_CODE_PASS
        assert '"provider": "openai"' in result.output
        assert '"tokens": 150' in result.output
        args, kwargs = mock_router.generate_with_failover.call_args
        assert args[0] == "Outline my thesis"
        assert args[1].value == "outline"

    def test_generate_structured(self, env, mock_router):
        mock_router.generate_with_failover.return_value = GenerationResult(
            content='```json\n{"sections": ["Intro"]}\n```',
            usage=TokenUsage(10, 10),
            cost=0.0001,
            provider="openai"
        )

        result = runner.invoke(app, ["generate", "Outline", "--structured"], env=env)

        assert result.exit_code == EXIT_CODE_PASS
        assert '"sections"' in result.output

    def test_budget_seeded_from_ledger(self, env, mock_router):
        ledger = UsageLedger(env["ACADEMIC_WORKFLOW_DB"])
        ledger.initialize()
        ledger.record(UsageEvent(
            timestamp=datetime.now(), provider="openai", model="gpt-4o", task_type="research",
            input_tokens=1, output_tokens=1, total_tokens=2, cost=3.5
        ))
        mock_router.generate_with_failover.return_value = GenerationResult(
            content="ok", usage=TokenUsage(1, 1), cost=0.0, provider="openai"
        )

        runner.invoke(app, ["generate", "hello"], env=env)

        assert mock_router.budget.consumed == pytest.approx(3.5)

    def test_budget_exceeded(self, env, mock_router):
        mock_router.generate_with_failover.side_effect = BudgetExceeded(used=100.0, limit=100.0)

        result = runner.invoke(app, ["generate", "hello"], env=env)

        assert result.exit_code == EXIT_CODE_FAIL
        assert "BUDGET_EXCEEDED" in result.output

    def test_no_provider_keys(self, env):
        env["OPENAI_API_KEY"] = None

        result = runner.invoke(app, ["generate", "hello"], env=env)

        assert result.exit_code == EXIT_CODE_FAIL
        assert "CONFIG_ERROR" in result.output

    def test_unknown_task(self, env, mock_router):
        result = runner.invoke(app, ["generate", "hello", "--task", "poetry"], env=env)

        assert result.exit_code == EXIT_CODE_FAIL
        mock_router.generate_with_failover.assert_not_called()


class TestUsage:
    def test_no_usage(self, env):
        result = runner.invoke(app, ["usage"], env=env)

        assert result.exit_code == EXIT_CODE_PASS
        assert "No AI usage recorded yet" in result.output
        assert "Budget:" in result.output

    def test_usage_totals(self, env):
        ledger = UsageLedger(env["ACADEMIC_WORKFLOW_DB"])
        ledger.initialize()
        ledger.record(UsageEvent(
            timestamp=datetime.now(), provider="anthropic", model="claude", task_type="writing",
            input_tokens=1000, output_tokens=500, total_tokens=1500, cost=0.0105
        ))

        result = runner.invoke(app, ["usage"], env=env)

        assert result.exit_code == EXIT_CODE_PASS
        assert "anthropic" in result.output
        assert "1,500" in result.output


class TestResearch:
    @patch('academic_workflow.cli.main.search_all')
    def test_research(self, mock_search):
        mock_search.return_value = SearchResult(
            references=[Reference(title="Deep learning", authors=["Yann LeCun"], year=2015, source="CrossRef")],
            sources=["CrossRef"],
            errors={"SemanticScholar": "Semantic Scholar rate limit", "CrossRef": None},
            cost=0.001
        )

        result = runner.invoke(app, ["research", "deep learning", "--bibtex"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Deep learning" in result.output
        assert "Semantic Scholar rate limit" in result.output
        assert "@article{lecun2015," in result.output
        mock_search.assert_called_once_with("deep learning", max_results=5)

    @patch('academic_workflow.cli.main.search_all')
    def test_all_sources_failed(self, mock_search):
        mock_search.return_value = SearchResult(
            references=[], sources=[], errors={"CrossRef": "CrossRef error: 503"}
        )

        result = runner.invoke(app, ["research", "deep learning"])

        assert result.exit_code == EXIT_CODE_FAIL

    def test_short_query(self):
        result = runner.invoke(app, ["research", "ab"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "at least 3 characters" in result.output


class TestSync:
    """Test reconciliation from the command line."""

    def _write_refs(self, workspace, refs):
        path = os.path.join(workspace, "refs.json")
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(refs, f)
        return path

    def test_offline_without_credentials(self, env, workspace):
        path = self._write_refs(workspace, [{"title": "A Paper", "authors": ["John Doe"], "year": 2020}])

        result = runner.invoke(app, ["sync", path], env=env)

        assert result.exit_code == EXIT_CODE_PASS
        assert "operating in offline mode" in result.output

    @patch('academic_workflow.cli.main.create_reconciler')
    def test_sync_reports_conflicts(self, mock_create, env, workspace):
        store = InMemoryStore([Reference(title="Conflicting Paper", authors=["John Doe"], year=2020, source="Science")])
        mock_create.return_value = ReferenceReconciler(store)
        path = self._write_refs(workspace, {"references": [
            {"title": "Conflicting Paper", "authors": "John Doe", "year": "2020", "source": "Nature"},
        ]})

        result = runner.invoke(app, ["sync", path], env=env)

        assert result.exit_code == EXIT_CODE_PASS
        assert "Different source" in result.output
        assert store.items["ITEM1"].source == "Science"

    @patch('academic_workflow.cli.main.create_reconciler')
    def test_sync_resolve(self, mock_create, env, workspace):
        store = InMemoryStore([Reference(title="Conflicting Paper", authors=["John Doe"], year=2020, source="Science")])
        mock_create.return_value = ReferenceReconciler(store)
        path = self._write_refs(workspace, [
            {"title": "Conflicting Paper", "authors": ["John Doe"], "year": 2020, "source": "Nature"},
        ])

        result = runner.invoke(app, ["sync", path, "--resolve", "use-local"], env=env)

        assert result.exit_code == EXIT_CODE_PASS
        assert "Resolved 1 conflict(s)" in result.output
        assert store.items["ITEM1"].source == "Nature"

    def test_invalid_strategy(self, env, workspace):
        path = self._write_refs(workspace, [])

        result = runner.invoke(app, ["sync", path, "--resolve", "newest"], env=env)

        assert result.exit_code == EXIT_CODE_FAIL

    def test_unreadable_file(self, env, workspace):
        path = os.path.join(workspace, "broken.json")
        with open(path, 'w', encoding='utf-8') as f:
            f.write("{not json")

        result = runner.invoke(app, ["sync", path], env=env)

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error reading" in result.output
