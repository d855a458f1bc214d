"""
Tests for configuration access and the command-line driver.
"""

import json
import logging

import pytest
import yaml

from config import ConfigurationManager, get_config
from bill_extraction.utils.logger import ROOT_LOGGER_NAME

import main as cli


@pytest.fixture
def restore_logging():
    """main() configures the package logger; undo it for the following tests"""
    yield
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.handlers.clear()
    root_logger.propagate = True
    root_logger.setLevel(logging.NOTSET)


@pytest.fixture
def offline_config(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump({
        "logging": {"level": "WARNING", "console": {"colorize": False}},
        "fallback": {"enabled": False},
        "knowledge": {"store": {"backend": "memory"}},
    }))
    return path


class TestConfiguration:

    def test_packaged_defaults(self):
        assert get_config("knowledge.cache.ttl_seconds") == 300
        assert get_config("heuristics.confidence.escalation_threshold") == 70
        assert get_config("heuristics.amount.penalty_per_extra_match") == 20
        assert get_config("heuristics.vendor.penalty_per_extra_match") == 30
        assert get_config("recognition.pool_size") == 3

    def test_missing_key_default(self):
        assert get_config("does.not.exist", "fallback") == "fallback"

    def test_paths_are_absolute(self):
        from pathlib import Path
        assert Path(get_config("paths.knowledge_db")).is_absolute()

    def test_custom_file(self, offline_config):
        ConfigurationManager.reset()
        ConfigurationManager(str(offline_config))
        assert get_config("fallback.enabled") is False
        assert get_config("knowledge.cache.ttl_seconds", 300) == 300


class TestCommandLine:

    def test_text_file_to_json(self, tmp_path, offline_config, restore_logging):
        bill = tmp_path / "netflix.txt"
        bill.write_text("NETFLIX\nTotal: $45.00\nPayment due 2026-02-01\n")
        output = tmp_path / "out" / "results.json"

        exit_code = cli.main([
            "--input", str(bill),
            "--config", str(offline_config),
            "--output", str(output),
        ])

        assert exit_code == 0
        results = json.loads(output.read_text())
        assert results == [{
            "file": str(bill),
            "result": {
                "amount": 45.0,
                "vendor": "Netflix",
                "category": "Subscriptions",
                "payDate": "2026-02-01",
            },
        }]

    def test_trace_output(self, tmp_path, offline_config, restore_logging):
        bill = tmp_path / "unknown.txt"
        bill.write_text("Corner shop receipt 12.50")
        output = tmp_path / "results.json"

        cli.main([
            "--input", str(tmp_path),
            "--config", str(offline_config),
            "--output", str(output),
            "--trace",
        ])

        entry = json.loads(output.read_text())[0]
        assert entry["result"]["vendor"] is None
        assert entry["trace"]["escalated"] is False
        assert entry["trace"]["confidences"]["amount"] == 100

    def test_missing_input(self, tmp_path, offline_config, restore_logging):
        exit_code = cli.main([
            "--input", str(tmp_path / "nope.png"),
            "--config", str(offline_config),
        ])
        assert exit_code == 1

    def test_unsupported_file(self, tmp_path, offline_config, restore_logging):
        pdf = tmp_path / "bill.pdf"
        pdf.write_bytes(b"%PDF-1.4")
        exit_code = cli.main(["--input", str(pdf), "--config", str(offline_config)])
        assert exit_code == 1
