"""Test logging setup, formatting and context fields.

Run:
    pytest tests/test_logging_config.py -v
"""

import json
import logging
import logging.handlers

import pytest

from pointmapper.utils import logging_config
from pointmapper.utils.logging_config import ContextFormatter, action_context, pop_context, push_context


@pytest.fixture(autouse=True)
def _clean(restore_root_logging):
    pop_context()
    yield
    pop_context()


def record(msg="hello"):
    return logging.LogRecord("pointmapper.test", logging.INFO, __file__, 1, msg, None, None)


def test_human_format_includes_context():
    push_context(app="cli")
    line = ContextFormatter("human", use_color=False).format(record())
    assert "| INFO" in line
    assert "app=cli" in line
    assert line.endswith("hello")


def test_json_format():
    push_context(app="server")
    payload = json.loads(ContextFormatter("json").format(record()))
    assert payload["lvl"] == "INFO"
    assert payload["app"] == "server"
    assert payload["msg"] == "hello"


def test_unknown_mode():
    with pytest.raises(ValueError):
        ContextFormatter("xml")


def test_action_context_restored_on_error():
    push_context(app="cli")
    with pytest.raises(RuntimeError):
        with action_context(action="scan"):
            assert logging_config._context_var.get() == {"app": "cli", "action": "scan"}
            raise RuntimeError("boom")
    assert logging_config._context_var.get() == {"app": "cli"}


def test_pop_context_keys():
    push_context(a=1, b=2)
    pop_context(["a"])
    assert logging_config._context_var.get() == {"b": 2}


def test_setup_logging_idempotent(tmp_path):
    root = logging.getLogger()
    first = logging_config.setup_logging("DEBUG", str(tmp_path / "a.log"))
    second = logging_config.setup_logging("INFO", str(tmp_path / "b.log"), json=True)
    assert not any(h in root.handlers for h in first)
    assert all(h in root.handlers for h in second)
    assert root.level == logging.INFO


def test_file_handler_rotation(tmp_path):
    handlers = logging_config.setup_logging(
        "INFO", str(tmp_path / "logs" / "run.log"), to_stderr=False,
        rotate={"mode": "size", "max_bytes": 1000, "backup_count": 1},
    )
    assert isinstance(handlers[0], logging.handlers.RotatingFileHandler)
    logging.getLogger("pointmapper.test").info("written")
    handlers[0].flush()
    assert "written" in (tmp_path / "logs" / "run.log").read_text(encoding="utf-8")


def test_bad_rotation_mode(tmp_path):
    with pytest.raises(ValueError):
        logging_config.setup_logging("INFO", str(tmp_path / "x.log"), rotate={"mode": "weekly"})
