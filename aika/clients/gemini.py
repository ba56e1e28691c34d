"""Helpers for the generative backend: ``generateContent`` and the Files API"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

import aiohttp

from aika.config import core

logger = logging.getLogger(__name__)

FILE_STATE_ACTIVE = "ACTIVE"
FILE_STATE_PROCESSING = "PROCESSING"


class GeminiError(RuntimeError):
    """Backend answered with a body we cannot use."""


def extract_text(body: Dict[str, Any]) -> str:
    """
    Return the first text part of the first candidate in ``body``.

    :raises GeminiError: if the response has no usable text.
    """
    candidates = body.get("candidates") if isinstance(body, dict) else None
    if not isinstance(candidates, list) or not candidates:
        raise GeminiError("no candidates found in response")
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    if not isinstance(content, dict):
        raise GeminiError("content not found in first candidate")
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts:
        raise GeminiError("no parts found in content")
    text = parts[0].get("text") if isinstance(parts[0], dict) else None
    if not isinstance(text, str):
        raise GeminiError("text not found in first part")
    return text


async def generate_content(
    payload: Dict[str, Any],
    model: str | None = None,
    api_key: str | None = None,
) -> str:
    """
    POST ``payload`` (a conversation request body) and return the reply text.
    """
    use_model = model or core.MODEL_ID
    url = f"{core.API_BASE_URL.rstrip('/')}/models/{use_model}:generateContent"
    params = {"key": api_key or core.GEMINI_API_KEY or ""}
    timeout = aiohttp.ClientTimeout(total=core.REQUEST_TIMEOUT)

    async with aiohttp.ClientSession(timeout=timeout) as s:
        async with s.post(url, params=params, json=payload) as resp:
            resp.raise_for_status()
            body = await resp.json()

    text = extract_text(body)
    logger.debug("Backend replied with %d chars", len(text))
    return text


def _file_info(body: Any) -> Dict[str, Any]:
    # Upload answers {"file": {...}}; GET on a file answers the file itself.
    info = body.get("file", body) if isinstance(body, dict) else None
    if not isinstance(info, dict) or not isinstance(info.get("name"), str):
        raise GeminiError("file resource missing from response")
    return info


async def upload_file(
    data: bytes,
    mime_type: str,
    api_key: str | None = None,
    *,
    poll_interval: float | None = None,
    max_wait: float | None = None,
) -> str:
    """
    Upload ``data`` to the Files API and return its ``file_uri`` once usable.

    Freshly uploaded videos stay ``PROCESSING`` for a while; the file is
    polled every ``poll_interval`` seconds until it leaves that state.

    :raises GeminiError: if the file ends in any state but ``ACTIVE``, has no
        URI, or is still processing after ``max_wait`` seconds.
    """
    params = {"key": api_key or core.GEMINI_API_KEY or ""}
    interval = core.UPLOAD_POLL_INTERVAL if poll_interval is None else poll_interval
    deadline = core.UPLOAD_MAX_WAIT if max_wait is None else max_wait
    upload_url = f"{core.UPLOAD_BASE_URL.rstrip('/')}/files"
    headers = {
        "X-Goog-Upload-Protocol": "raw",
        "X-Goog-Upload-Header-Content-Type": mime_type,
        "Content-Type": mime_type,
    }
    timeout = aiohttp.ClientTimeout(total=core.REQUEST_TIMEOUT)

    async with aiohttp.ClientSession(timeout=timeout) as s:
        async with s.post(upload_url, params=params, headers=headers, data=data) as resp:
            resp.raise_for_status()
            info = _file_info(await resp.json())

        waited = 0.0
        while info.get("state") == FILE_STATE_PROCESSING:
            if waited >= deadline:
                raise GeminiError(f"file {info['name']} still processing after {deadline}s")
            logger.info("Waiting for %s to finish processing", info["name"])
            await asyncio.sleep(interval)
            waited += interval
            file_url = f"{core.API_BASE_URL.rstrip('/')}/{info['name']}"
            async with s.get(file_url, params=params) as resp:
                resp.raise_for_status()
                info = _file_info(await resp.json())

    state = info.get("state")
    if state != FILE_STATE_ACTIVE:
        raise GeminiError(f"uploaded file has state {state}, not {FILE_STATE_ACTIVE}")
    uri = info.get("uri")
    if not isinstance(uri, str) or not uri:
        raise GeminiError("uploaded file has no uri")
    logger.info("Uploaded %d bytes as %s", len(data), info["name"])
    return uri
