import ast
import io
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

import playlist_engine.logging_utils as logging_utils

PACKAGE_DIR = Path(__file__).resolve().parents[2] / "playlist_engine"


def test_no_print_statements():
    offenders = []
    for path in PACKAGE_DIR.rglob("*.py"):
        tree = ast.parse(path.read_text(encoding="utf-8"))
        for node in ast.walk(tree):
            if isinstance(node, ast.Call):
                func = node.func
                if isinstance(func, ast.Name) and func.id == "print":
                    offenders.append(str(path))
    assert not offenders, f"print() calls remain in: {offenders}"


def test_quiet_suppresses_info(monkeypatch):
    buf = io.StringIO()
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FILE", raising=False)
    monkeypatch.setattr(logging_utils, "_logging_configured", False)
    monkeypatch.setattr(logging_utils.sys, "stderr", buf)
    logging_utils.configure_logging(level="WARNING", console=True, force=True)

    logger = logging.getLogger("quiet_test")
    logger.info("info hidden")
    logger.warning("warn shown")

    output = buf.getvalue()
    assert "info hidden" not in output
    assert "warn shown" in output
