"""Tests for the record store maintenance CLI."""

import asyncio
import json
import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from retryflow.__main__ import build_parser, main
from retryflow.retry.models import RetryRecord, RetryStatus
from retryflow.retry.store import JsonFileRetryRecordStore

NOW = datetime.now(UTC)


def make_record(event_id, status=RetryStatus.RETRYING, attempts=1, age=timedelta(0), **kwargs):
    at = NOW - age
    return RetryRecord(
        event_id=event_id,
        event_type=kwargs.pop("event_type", "StockUpdated"),
        attempts=attempts,
        max_attempts=3,
        first_attempt_at=at,
        last_attempt_at=at,
        status=status,
        **kwargs,
    )


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("RETRYFLOW_CONFIG", raising=False)
    with patch("retryflow.__main__.setup_logging") as mock_setup_logging, patch(
        "retryflow.__main__.load_dotenv"
    ):
        yield mock_setup_logging


@pytest.fixture
def store_file(tmp_path):
    path = tmp_path / "records.json"
    store = JsonFileRetryRecordStore(path)

    async def fill():
        await store.save(
            make_record(
                "evt-due",
                attempts=1,
                next_retry_at=NOW - timedelta(minutes=1),
                last_error="TimeoutError: slow",
                metadata={"quantity": 3},
            )
        )
        await store.save(make_record("evt-later", next_retry_at=NOW + timedelta(hours=1)))
        await store.save(
            make_record("evt-dead", status=RetryStatus.DEAD_LETTER, attempts=3, age=timedelta(days=40))
        )

    asyncio.run(fill())
    return path


class TestParser:
    def test_global_options(self):
        args = build_parser().parse_args(["--store", "r.json", "--json", "show", "evt-1"])
        assert args.store == "r.json"
        assert args.json
        assert args.command == "show"
        assert args.event_id == "evt-1"

    def test_cleanup_days_default(self):
        args = build_parser().parse_args(["cleanup"])
        assert args.days is None


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_missing_store_configuration(self, capsys):
        assert main(["stats"]) == 1
        assert "no record store configured" in capsys.readouterr().out

    def test_store_file_not_found(self, tmp_path, capsys):
        assert main(["--store", str(tmp_path / "missing.json"), "stats"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_stats(self, store_file, capsys):
        assert main(["--store", str(store_file), "stats"]) == 0

        out = capsys.readouterr().out
        assert "Total records:     3" in out
        assert "Dead-lettered:     1" in out
        assert "StockUpdated" in out

    def test_stats_json(self, store_file, capsys):
        assert main(["--store", str(store_file), "--json", "stats"]) == 0

        stats = json.loads(capsys.readouterr().out)
        assert stats["total_retries"] == 3
        assert stats["in_progress"] == 2

    def test_show(self, store_file, capsys):
        assert main(["--store", str(store_file), "show", "evt-due"]) == 0

        out = capsys.readouterr().out
        assert "Retry Record: evt-due" in out
        assert "Attempts:       1/3" in out
        assert "TimeoutError: slow" in out
        assert "quantity: 3" in out

    def test_show_missing_record(self, store_file, capsys):
        assert main(["--store", str(store_file), "show", "nope"]) == 1
        assert "No retry record found for event 'nope'" in capsys.readouterr().out

    def test_due(self, store_file, capsys):
        assert main(["--store", str(store_file), "due"]) == 0

        out = capsys.readouterr().out
        assert "evt-due" in out
        assert "evt-later" not in out

    def test_due_json(self, store_file, capsys):
        assert main(["--store", str(store_file), "--json", "due"]) == 0

        due = json.loads(capsys.readouterr().out)
        assert [r["event_id"] for r in due] == ["evt-due"]

    def test_cleanup(self, store_file, capsys):
        assert main(["--store", str(store_file), "cleanup", "--days", "30"]) == 0

        assert "Removed 1 terminal retry record(s)" in capsys.readouterr().out
        assert len(JsonFileRetryRecordStore(store_file)) == 2

    def test_store_path_from_config(self, store_file, tmp_path, capsys):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(f"retryflow:\n  store_path: {store_file}\n  retention_days: 60\n")

        assert main(["--config", str(config_file), "cleanup"]) == 0

        assert "older than 60 day(s)" in capsys.readouterr().out
        assert len(JsonFileRetryRecordStore(store_file)) == 3

    def test_invalid_config_reports_error(self, tmp_path, capsys):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("retryflow:\n  mode: sometimes\n")

        assert main(["--config", str(config_file), "stats"]) == 1
        assert capsys.readouterr().out.startswith("Error:")

    def test_corrupt_store_reports_error(self, tmp_path, capsys):
        path = tmp_path / "records.json"
        path.write_text("{broken")

        assert main(["--store", str(path), "stats"]) == 1
        assert "Error:" in capsys.readouterr().out

    def test_logging_follows_config(self, store_file, tmp_path, isolated):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("retryflow:\n  json_logs: true\n")

        assert main(["--config", str(config_file), "--store", str(store_file), "-v", "stats"]) == 0

        isolated.assert_called_once_with(level=logging.DEBUG, json_format=True)
