import os
from pathlib import Path

_DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent.parent / "data"


class Storage:
    def __init__(self, config: dict | None = None) -> None:
        storage_cfg = (config or {}).get("aika", {}).get("storage", {})
        self.CHAT_DB_PATH: str = str(
            storage_cfg.get("chat_db_path", os.getenv("CHAT_DB_PATH", str(_DEFAULT_DATA_DIR / "chats.db")))
        )
        self.SETTINGS_DB_PATH: str = str(
            storage_cfg.get("settings_db_path", os.getenv("SETTINGS_DB_PATH", str(_DEFAULT_DATA_DIR / "settings.db")))
        )
        self.CHAT_TABLE: str = str(storage_cfg.get("chat_table", os.getenv("CHAT_TABLE", "chats")))
        # Seconds between write-back cycles
        self.FLUSH_INTERVAL: float = float(storage_cfg.get("flush_interval", os.getenv("FLUSH_INTERVAL", "5")))
