"""Tests for structured logging setup."""

import json
import logging

import structlog

from utils.logger import get_logger, setup_logger


def _lines(path):
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def test_stdlib_records_are_rendered_as_json(tmp_path):
    log_file = tmp_path / "logs" / "scaffolder.log"
    setup_logger(level="INFO", log_format="json", log_file=str(log_file))

    logging.getLogger("lifecycle.teardown").info("[CLEANUP] Cleaned up service: user-service")
    logging.getLogger("lifecycle.teardown").debug("below the configured level")

    lines = _lines(log_file)
    assert len(lines) == 1
    assert lines[0]["event"] == "[CLEANUP] Cleaned up service: user-service"
    assert lines[0]["level"] == "info"
    assert lines[0]["logger"] == "lifecycle.teardown"
    assert "timestamp" in lines[0]


def test_structlog_events_share_the_handlers(tmp_path):
    structlog.reset_defaults()
    log_file = tmp_path / "scaffolder.log"
    setup_logger(level="DEBUG", log_format="json", log_file=str(log_file))

    get_logger("api.app").info("app_created", workspace="/srv/projects")

    line = _lines(log_file)[-1]
    assert line["event"] == "app_created"
    assert line["workspace"] == "/srv/projects"
    assert line["logger"] == "api.app"


def test_text_format_is_not_json(tmp_path):
    log_file = tmp_path / "scaffolder.log"
    setup_logger(level="INFO", log_format="text", log_file=str(log_file))

    logging.getLogger("clients.k8s").warning("[K8S] cluster unreachable")

    text = log_file.read_text()
    assert "[K8S] cluster unreachable" in text
    assert not text.lstrip().startswith("{")
