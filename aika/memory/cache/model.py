from __future__ import annotations

"""Dataclass models for cached conversations.

Part schema (output of :meth:`Part.to_dict`), matching the generative
backend's request format:

```
{"text": "Hello world!"}
{"inline_data": {"mime_type": "image/jpeg", "data": "<base64>"}}
{"file_data": {"mime_type": "video/mp4", "file_uri": "https://..."}}
```

A :class:`Turn` is ``{"role": "user" | "model", "parts": [Part, ...]}`` and
always holds at least one part. A :class:`ConversationRecord` serializes to
the complete request body (``contents``, ``systemInstruction``,
``safetySettings``, ``generationConfig``).
"""

import textwrap
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Literal, Tuple

Role = Literal["user", "model"]
ROLES: Tuple[str, ...] = ("user", "model")


@dataclass(frozen=True, slots=True)
class Part:
    """Base part type."""

    wire_key: ClassVar[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_wire(cls, value: Any) -> "Part":
        raise NotImplementedError

    def summary(self, width: int = 20) -> str:
        """Return a compact one-line summary for logs."""
        return self.wire_key


@dataclass(frozen=True, slots=True)
class TextPart(Part):
    """Plain text part."""

    wire_key: ClassVar[str] = "text"
    text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text}

    @classmethod
    def from_wire(cls, value: Any) -> "TextPart":
        if not isinstance(value, str):
            raise ValueError(f"text part must hold a string, got {type(value).__name__}")
        return cls(text=value)

    def summary(self, width: int = 20) -> str:
        return f"text:'{textwrap.shorten(self.text, width=width, placeholder='…')}'"


@dataclass(frozen=True, slots=True)
class InlineImagePart(Part):
    """Image embedded as base64 bytes."""

    wire_key: ClassVar[str] = "inline_data"
    mime_type: str = ""
    data: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"inline_data": {"mime_type": self.mime_type, "data": self.data}}

    @classmethod
    def from_wire(cls, value: Any) -> "InlineImagePart":
        mime, data = _pair(value, "mime_type", "data")
        return cls(mime_type=mime, data=data)

    def summary(self, width: int = 20) -> str:
        return f"image:{self.mime_type}({len(self.data)}b64)"


@dataclass(frozen=True, slots=True)
class FileReferencePart(Part):
    """Externally hosted media referenced by URI."""

    wire_key: ClassVar[str] = "file_data"
    mime_type: str = ""
    uri: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"file_data": {"mime_type": self.mime_type, "file_uri": self.uri}}

    @classmethod
    def from_wire(cls, value: Any) -> "FileReferencePart":
        mime, uri = _pair(value, "mime_type", "file_uri")
        return cls(mime_type=mime, uri=uri)

    def summary(self, width: int = 20) -> str:
        return f"file:{self.mime_type}"


def _pair(value: Any, first: str, second: str) -> Tuple[str, str]:
    if not isinstance(value, dict):
        raise ValueError(f"expected an object, got {type(value).__name__}")
    a, b = value.get(first), value.get(second)
    if not isinstance(a, str) or not isinstance(b, str):
        raise ValueError(f"expected string fields {first!r} and {second!r}")
    return a, b


# Mapping of wire key to dataclass for deserialization
_PART_REGISTRY: Dict[str, type[Part]] = {
    cls.wire_key: cls for cls in (TextPart, InlineImagePart, FileReferencePart)
}


def part_from_dict(data: Dict[str, Any]) -> Part:
    """
    Instantiate a concrete :class:`Part` from its serialized dict.

    :param data: Serialized part, e.g. ``{"text": "hi"}``.
    :returns: Constructed :class:`Part` subclass.
    :raises ValueError: if the shape matches no known part.
    """
    if not isinstance(data, dict):
        raise ValueError(f"part must be an object, got {type(data).__name__}")
    keys = [k for k in data if k in _PART_REGISTRY]
    if len(keys) != 1:
        raise ValueError(f"Unknown part shape: {sorted(data)}")
    key = keys[0]
    return _PART_REGISTRY[key].from_wire(data[key])


@dataclass(frozen=True, slots=True)
class Turn:
    """One role-tagged exchange unit."""

    role: Role
    parts: Tuple[Part, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "parts", tuple(self.parts))
        if self.role not in ROLES:
            raise ValueError(f"Unknown role: {self.role!r}")
        if not self.parts:
            raise ValueError("A turn needs at least one part")

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "parts": [p.to_dict() for p in self.parts]}

    def text(self) -> str:
        """Concatenated text parts."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))


@dataclass(frozen=True, slots=True)
class SafetySetting:
    category: str
    threshold: str

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "threshold": self.threshold}


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    temperature: float
    top_k: int
    top_p: float
    max_output_tokens: int
    response_mime_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
            "responseMimeType": self.response_mime_type,
        }


@dataclass
class ConversationRecord:
    """
    Full state of one conversation.

    Only ``contents`` ever changes after creation, and only by
    :meth:`append`. ``revision`` counts appends and is not part of equality.
    """

    system_instruction: Turn
    safety_settings: Tuple[SafetySetting, ...]
    generation_config: GenerationConfig
    contents: List[Turn] = field(default_factory=list)
    revision: int = field(default=0, compare=False)

    def append(self, turn: Turn) -> int:
        self.contents.append(turn)
        self.revision += 1
        return self.revision

    def copy(self) -> "ConversationRecord":
        """Return a copy whose ``contents`` list is independent of this one."""
        return ConversationRecord(
            system_instruction=self.system_instruction,
            safety_settings=self.safety_settings,
            generation_config=self.generation_config,
            contents=list(self.contents),
            revision=self.revision,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contents": [t.to_dict() for t in self.contents],
            "systemInstruction": self.system_instruction.to_dict(),
            "safetySettings": [s.to_dict() for s in self.safety_settings],
            "generationConfig": self.generation_config.to_dict(),
        }


__all__ = [
    "Role",
    "ROLES",
    "Part",
    "TextPart",
    "InlineImagePart",
    "FileReferencePart",
    "part_from_dict",
    "Turn",
    "SafetySetting",
    "GenerationConfig",
    "ConversationRecord",
]
