"""
Conversation payload codec.

Records are stored as JSON in exactly the shape the generative backend
accepts as a request body, so the stored payload and the outbound request
are the same document. :func:`encode_record` writes it; :func:`decode_record`
walks the generic JSON structure and rebuilds typed :class:`Turn` /
:class:`Part` values, raising :class:`DeserializationError` on any shape it
does not recognise.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List

from aika.memory.store.errors import DeserializationError

from .model import (
    ROLES,
    ConversationRecord,
    GenerationConfig,
    SafetySetting,
    Turn,
    part_from_dict,
)

logger = logging.getLogger(__name__)


def encode_record(record: ConversationRecord) -> str:
    """Return the JSON payload for ``record``."""

    return json.dumps(record.to_dict(), ensure_ascii=False)


def _require(data: dict, key: str, typ: type | tuple[type, ...]) -> Any:
    if key not in data:
        raise DeserializationError(f"Missing field {key!r}")
    value = data[key]
    if not isinstance(value, typ):
        raise DeserializationError(
            f"Field {key!r} has type {type(value).__name__}"
        )
    return value


def _turn_from_dict(data: Any, *, where: str) -> Turn | None:
    """Return the typed turn, or ``None`` for a turn with no parts."""

    if not isinstance(data, dict):
        raise DeserializationError(f"{where}: turn must be an object")
    role = _require(data, "role", str)
    if role not in ROLES:
        raise DeserializationError(f"{where}: unknown role {role!r}")
    raw_parts = _require(data, "parts", list)
    try:
        parts = [part_from_dict(p) for p in raw_parts]
    except ValueError as exc:
        raise DeserializationError(f"{where}: {exc}") from exc
    if not parts:
        return None
    return Turn(role=role, parts=tuple(parts))


def _generation_config(data: Any) -> GenerationConfig:
    if not isinstance(data, dict):
        raise DeserializationError("generationConfig must be an object")
    try:
        return GenerationConfig(
            temperature=float(_require(data, "temperature", (int, float))),
            top_k=int(_require(data, "topK", int)),
            top_p=float(_require(data, "topP", (int, float))),
            max_output_tokens=int(_require(data, "maxOutputTokens", int)),
            response_mime_type=_require(data, "responseMimeType", str),
        )
    except (TypeError, ValueError) as exc:
        raise DeserializationError(f"generationConfig: {exc}") from exc


def _safety_settings(data: list) -> tuple[SafetySetting, ...]:
    out: List[SafetySetting] = []
    for item in data:
        if not isinstance(item, dict):
            raise DeserializationError("safetySettings entries must be objects")
        out.append(
            SafetySetting(
                category=_require(item, "category", str),
                threshold=_require(item, "threshold", str),
            )
        )
    return tuple(out)


def decode_record(raw: str | bytes, *, identifier: str = "?") -> ConversationRecord:
    """
    Decode a stored payload into a :class:`ConversationRecord`.

    Turns without parts are dropped with a warning.

    :raises DeserializationError: if ``raw`` is not a well-formed record.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise DeserializationError(f"Invalid JSON for {identifier}: {exc}") from exc
    if not isinstance(data, dict):
        raise DeserializationError(f"Payload for {identifier} is not an object")

    system = _turn_from_dict(
        _require(data, "systemInstruction", dict), where="systemInstruction"
    )
    if system is None:
        raise DeserializationError(f"Empty systemInstruction for {identifier}")

    contents: List[Turn] = []
    for idx, item in enumerate(_require(data, "contents", list)):
        turn = _turn_from_dict(item, where=f"contents[{idx}]")
        if turn is None:
            logger.warning("Dropping empty turn %d while loading %s", idx, identifier)
            continue
        contents.append(turn)

    return ConversationRecord(
        system_instruction=system,
        safety_settings=_safety_settings(_require(data, "safetySettings", list)),
        generation_config=_generation_config(_require(data, "generationConfig", dict)),
        contents=contents,
    )


__all__ = ["encode_record", "decode_record"]
