"""Tests for main.py — mock all constructors."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from helpdesk_rag.config import Settings
from helpdesk_rag.models import AnswerResult

SETTINGS = Settings(embedding_provider="none", index_path=Path(".test_db"), embedding_dimensions=8)


class TestIndexCommand:
    @patch("main.KnowledgeIndexer")
    @patch("main.ChromaKnowledgeStore")
    async def test_creates_store_and_indexes_directory(self, mock_store_cls, mock_indexer_cls):
        mock_indexer = MagicMock()
        mock_indexer.index_directory = AsyncMock(return_value=5)
        mock_indexer_cls.from_settings.return_value = mock_indexer

        from main import index_command

        await index_command(SETTINGS, Path("data"))

        mock_store_cls.assert_called_once_with(index_path=Path(".test_db"), dimensions=8)
        mock_indexer.index_directory.assert_called_once_with(Path("data"))


class TestQueryCommand:
    @patch("main.RAGPipeline")
    @patch("main.ChromaKnowledgeStore")
    async def test_creates_pipeline_and_prints_answer(self, mock_store_cls, mock_pipeline_cls, capsys):
        mock_pipeline = MagicMock()
        mock_pipeline.answer = AsyncMock(
            return_value=AnswerResult(response_text="We open at 9.", used_knowledge_ids=["hours"])
        )
        mock_pipeline.retriever.stats.snapshot.return_value = {"outcomes": {"keyword": 1}, "failures": {}}
        mock_pipeline_cls.from_settings.return_value = mock_pipeline

        from main import query_command

        await query_command(SETTINGS, "When do you open?")

        mock_pipeline_cls.from_settings.assert_called_once_with(SETTINGS, mock_store_cls.return_value)
        mock_pipeline.answer.assert_called_once_with("When do you open?")
        assert "We open at 9." in capsys.readouterr().out


@patch("main.setup_logging")
@patch("main.Settings", **{"from_env.return_value": SETTINGS})
class TestMain:
    @patch("main.query_command", new_callable=AsyncMock)
    @patch("main.index_command", new_callable=AsyncMock)
    async def test_dispatches_index_command(self, mock_index, mock_query, _settings_cls, _logging):
        from main import main

        with patch.object(sys, "argv", ["main", "index", "--data-dir", "docs"]):
            await main()

        mock_index.assert_called_once_with(SETTINGS, Path("docs"))
        mock_query.assert_not_called()

    @patch("main.query_command", new_callable=AsyncMock)
    @patch("main.index_command", new_callable=AsyncMock)
    async def test_dispatches_query_with_overrides(self, mock_index, mock_query, _settings_cls, _logging):
        from main import main

        argv = ["main", "--index-path", "/tmp/idx", "query", "what are your hours?", "--top-k", "5", "--no-web"]
        with patch.object(sys, "argv", argv):
            await main()

        settings, query = mock_query.call_args.args
        assert query == "what are your hours?"
        assert settings.index_path == Path("/tmp/idx")
        assert settings.retrieval_limit == 5
        assert settings.web_search_enabled is False
        mock_index.assert_not_called()

    @patch("main.query_command", new_callable=AsyncMock)
    @patch("main.index_command", new_callable=AsyncMock)
    async def test_no_command_prints_help(self, mock_index, mock_query, _settings_cls, _logging, capsys):
        from main import main

        with patch.object(sys, "argv", ["main"]):
            await main()

        assert "usage" in capsys.readouterr().out.lower()
        mock_index.assert_not_called()
        mock_query.assert_not_called()


class TestListCommand:
    @patch("main.ChromaKnowledgeStore")
    def test_prints_items(self, mock_store_cls, hours_item, capsys):
        mock_store_cls.return_value.all_items.return_value = [hours_item]

        from main import list_command

        list_command(SETTINGS)

        out = capsys.readouterr().out
        assert "hours" in out
        assert "Business Hours" in out
        assert "1 knowledge items." in out

    @patch("main.ChromaKnowledgeStore")
    def test_empty_store(self, mock_store_cls, capsys):
        mock_store_cls.return_value.all_items.return_value = []

        from main import list_command

        list_command(SETTINGS)

        assert "Knowledge base is empty." in capsys.readouterr().out


class TestDeleteCommand:
    @patch("main.ChromaKnowledgeStore")
    def test_deletes_by_id(self, mock_store_cls, capsys):
        mock_store_cls.return_value.delete_by_id.return_value = True

        from main import delete_command

        assert delete_command(SETTINGS, "hours") is True
        mock_store_cls.return_value.delete_by_id.assert_called_once_with("hours")
        assert "Deleted hours." in capsys.readouterr().out

    @patch("main.ChromaKnowledgeStore")
    def test_unknown_id(self, mock_store_cls, capsys):
        mock_store_cls.return_value.delete_by_id.return_value = False

        from main import delete_command

        assert delete_command(SETTINGS, "missing") is False
        assert "No knowledge item with id missing." in capsys.readouterr().out


@patch("main.setup_logging")
@patch("main.Settings", **{"from_env.return_value": SETTINGS})
class TestAdminDispatch:
    @patch("main.list_command")
    async def test_dispatches_list(self, mock_list, _settings_cls, _logging):
        from main import main

        with patch.object(sys, "argv", ["main", "list"]):
            await main()

        mock_list.assert_called_once_with(SETTINGS)

    @patch("main.delete_command", return_value=False)
    async def test_delete_unknown_exits_nonzero(self, mock_delete, _settings_cls, _logging):
        from main import main

        with patch.object(sys, "argv", ["main", "delete", "missing"]):
            with pytest.raises(SystemExit) as exc:
                await main()

        assert exc.value.code == 1
        mock_delete.assert_called_once_with(SETTINGS, "missing")
