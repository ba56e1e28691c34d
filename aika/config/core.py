import logging
import os

logger = logging.getLogger(__name__)

_DEFAULT_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
_DEFAULT_UPLOAD_BASE_URL = "https://generativelanguage.googleapis.com/upload/v1beta"


class Core:
    def __init__(self, config: dict | None = None) -> None:
        cfg = (config or {}).get("aika", {})
        bot_cfg = cfg.get("bot", {})
        models_cfg = cfg.get("models", {})
        limits_cfg = cfg.get("limits", {})

        key_env = str(models_cfg.get("api_key_env", "GEMINI_API_KEY"))

        self.GEMINI_API_KEY: str | None = os.getenv(key_env)
        self.MODEL_ID: str = str(models_cfg.get("model_id", os.getenv("MODEL_ID", "gemini-1.5-flash")))
        self.API_BASE_URL: str = str(models_cfg.get("api_base_url", os.getenv("API_BASE_URL", _DEFAULT_API_BASE_URL)))
        self.UPLOAD_BASE_URL: str = str(
            models_cfg.get("upload_base_url", os.getenv("UPLOAD_BASE_URL", _DEFAULT_UPLOAD_BASE_URL))
        )
        self.REQUEST_TIMEOUT: float = float(models_cfg.get("request_timeout", os.getenv("REQUEST_TIMEOUT", "60")))
        # Files API: seconds between state checks, and how long to wait in total
        self.UPLOAD_POLL_INTERVAL: float = float(
            models_cfg.get("upload_poll_interval", os.getenv("UPLOAD_POLL_INTERVAL", "5"))
        )
        self.UPLOAD_MAX_WAIT: float = float(models_cfg.get("upload_max_wait", os.getenv("UPLOAD_MAX_WAIT", "300")))

        # The bot's own number; messages it sent itself are never answered.
        self.BOT_NUMBER: str = str(bot_cfg.get("bot_number") or os.getenv("BOT_NUMBER") or "")

        # Inbound text longer than this is refused before it reaches the cache.
        self.MAX_TURN_CHARS: int = int(limits_cfg.get("max_turn_chars", os.getenv("MAX_TURN_CHARS", "4000")))

        required = [
            ("GEMINI_API_KEY", self.GEMINI_API_KEY),
        ]
        missing = [name for name, val in required if not val]
        if missing:
            raise ValueError(f"Missing environment variables: {', '.join(missing)}")
