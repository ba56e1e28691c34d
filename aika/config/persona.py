import logging
import os
from pathlib import Path
from typing import List, Tuple

logger = logging.getLogger(__name__)

_DEFAULT_SYSTEM_INSTRUCTION = (
    "You are Aika, a friendly, empathetic, and creative assistant with a deep "
    "understanding of human emotions and moods. Use informal Indonesian "
    "(bahasa gaul) and minimize unnecessary emojis. Only respond when directly "
    "addressed by your name or when a user clearly wants to interact with you; "
    "otherwise, reply with 'DISABLE_RESPONSE' and nothing else. Keep your "
    "responses concise, without unnecessary spaces or newlines. Use WhatsApp "
    "text formatting, not markdown. You are a female assistant, and your "
    "zodiac sign is Libra."
)

# Sentinel the model answers with when it should stay silent
DISABLE_RESPONSE = "DISABLE_RESPONSE"

_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class Persona:
    def __init__(self, config: dict | None = None) -> None:
        persona_cfg = (config or {}).get("aika", {}).get("persona", {})
        generation_cfg = persona_cfg.get("generation", {})

        self.PROMPT_FILE: str = str(persona_cfg.get("prompt_file", os.getenv("PERSONA_PROMPT_FILE", "")))
        self.SAFETY_THRESHOLD: str = str(
            persona_cfg.get("safety_threshold", os.getenv("SAFETY_THRESHOLD", "BLOCK_NONE"))
        )

        self.TEMPERATURE: float = float(generation_cfg.get("temperature", os.getenv("GEN_TEMPERATURE", "0.7")))
        self.TOP_K: int = int(generation_cfg.get("top_k", os.getenv("GEN_TOP_K", "64")))
        self.TOP_P: float = float(generation_cfg.get("top_p", os.getenv("GEN_TOP_P", "0.5")))
        self.MAX_OUTPUT_TOKENS: int = int(
            generation_cfg.get("max_output_tokens", os.getenv("GEN_MAX_OUTPUT_TOKENS", "8192"))
        )
        self.RESPONSE_MIME_TYPE: str = str(
            generation_cfg.get("response_mime_type", os.getenv("GEN_RESPONSE_MIME_TYPE", "text/plain"))
        )

        self.IMAGE_MIME_TYPE: str = str(persona_cfg.get("image_mime_type", "image/jpeg"))
        self.VIDEO_MIME_TYPE: str = str(persona_cfg.get("video_mime_type", "video/mp4"))

        self.system_instruction: str = self._load_system_instruction() or _DEFAULT_SYSTEM_INSTRUCTION

    @property
    def safety_settings(self) -> List[Tuple[str, str]]:
        """Return the fixed ``(category, threshold)`` pairs."""
        return [(category, self.SAFETY_THRESHOLD) for category in _SAFETY_CATEGORIES]

    def _load_system_instruction(self) -> str:
        """Load persona text from the configured file."""

        file_path = (self.PROMPT_FILE or "").strip()
        if not file_path:
            return ""

        path = Path(file_path)
        if not path.is_file():
            logger.info("Persona prompt file %s not found; using default.", path)
            return ""

        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            logger.warning("Failed to read persona prompt file %s: %s", path, exc)
            return ""
