import logging
from pathlib import Path

import pytest

from metamode.config import get_settings
from metamode.logging import clear_context

SETTINGS_ENV = (
    "APP_ENV",
    "LOG_LEVEL",
    "MM_SOURCE_DIRS",
    "MM_EXTENSIONS",
    "MM_EXCLUDE",
    "MM_MAX_DEPTH",
    "MM_DB_VERSION",
    "MM_OUTPUT_DIR",
    "MM_TOKEN_BUDGET",
    "MM_MAX_ENTRIES",
    "MM_REQUIRED_FIELDS",
    "MM_WARN_ONLY_RULES",
    "MM_PATH_SEGMENT_MATCH",
)


@pytest.fixture(autouse=True)
def test_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    for key in SETTINGS_ENV:
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env out of the settings under test.
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    # The CLI installs a stderr handler bound to the runner's stream.
    root.handlers[:] = handlers
    root.setLevel(level)
    clear_context()
