"""Pytest configuration shared by all suites.

What:
  Put the in-repo source tree on ``sys.path`` and apply the canned runtime
  configuration to every test.

Why:
  Tests must exercise ``syncback/src`` rather than an installed wheel, and the
  runtime configuration is cached globally; without resets tests would depend
  on execution order.

How:
  Prepend ``syncback/src`` to ``sys.path`` at import time and define the
  autouse :func:`runtime_config` fixture that points ``SYNCBACK_CONFIG_PATH``
  at ``tests/data/config.yaml`` and clears the cache around each test.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "syncback" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from syncback.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test."""

    monkeypatch.setenv("SYNCBACK_CONFIG_PATH", str(CONFIG_PATH))
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
