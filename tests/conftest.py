import os, sys
from pathlib import Path

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

# Ensure required environment variables for Core validation
os.environ.setdefault("GEMINI_API_KEY", "test-gemini")
os.environ.setdefault("PERSONA_PROMPT_FILE", "")

from aika.memory.store import db  # noqa: E402


@pytest.fixture
def chat_conn(tmp_path):
    conn = db.connect(str(tmp_path / "chats.db"))
    yield conn
    conn.close()


@pytest.fixture
def settings_conn(tmp_path):
    conn = db.connect(str(tmp_path / "settings.db"))
    yield conn
    conn.close()
