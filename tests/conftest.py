# tests/conftest.py
from __future__ import annotations
import logging
import os
import sys

import pytest

from runscripts.config import const

from fakes import FakeLauncher

_MIN_PY = tuple(map(int, os.getenv("RUNSCRIPTS_MIN_PY", "3.10").split(".")))


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    return FakeLauncher()


# ---------- autofixture: вложенный запуск (тесты из-под runscripts) не должен влиять ----------
@pytest.fixture(autouse=True)
def _clean_runscripts_env(monkeypatch):
    for key in (
        const.ENV_PARALLEL_MAX,
        const.ENV_PARALLEL_RESOLVED,
        const.ENV_PARALLEL,
        const.ENV_SHELL,
        const.ENV_LOG_LEVEL,
        const.ENV_LOG_DIR,
    ):
        monkeypatch.delenv(key, raising=False)


# ---------- autofixture: setup_logging() не должен протекать между тестами ----------
@pytest.fixture(autouse=True)
def _restore_runscripts_logger():
    logger = logging.getLogger("runscripts")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield
    for h in logger.handlers:
        if h not in saved[1]:
            h.close()
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


@pytest.fixture
def cli_app():
    from runscripts.apps.cli.app import app

    return app


def pytest_sessionstart(session):
    if sys.version_info < _MIN_PY:
        from _pytest.outcomes import Exit

        raise Exit(
            f"runscripts tests require Python >= {'.'.join(map(str, _MIN_PY))}; current: {sys.executable} ({sys.version.split()[0]})",
            returncode=2,
        )
