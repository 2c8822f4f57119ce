"""Pull a generated image out of a chat-completion message.

Image models behind OpenRouter disagree on where the picture goes: a direct
``image_url``/``images`` field, a content part with a URL or base64 payload,
a URL inside the text, or somewhere deeper. The lookup order is fixed:

1. direct fields on the message
2. content parts (or the content string / object)
3. deep scan, at most ``MAX_SCAN_DEPTH`` levels, each container visited once

Messages are plain ``dict``/``list`` trees (``model_dump()`` of the SDK object).
"""

import json
import re
from typing import Any

MAX_SCAN_DEPTH = 6
MIN_BASE64_LEN = 100
DEFAULT_MIME = "image/png"
PREVIEW_LIMIT = 6000

_DATA_URL_RE = re.compile(r"data:image/[a-zA-Z+.-]+;base64,[A-Za-z0-9+/=]+")
_MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*]\((https?://[^)\s]+)\)")
_PLAIN_URL_RE = re.compile(r"https?://\S+")
_TRAILING_PUNCT_RE = re.compile(r"[)\]\"'>.,]+$")
_BASE64_RE = re.compile(r"[A-Za-z0-9+/=\s]+")
_WHITESPACE_RE = re.compile(r"\s+")


def _dig(value: Any, *path: str | int) -> Any:
    for key in path:
        if isinstance(key, int):
            if not isinstance(value, list) or len(value) <= key:
                return None
            value = value[key]
        elif isinstance(value, dict):
            value = value.get(key)
        else:
            return None
        if value is None:
            return None
    return value


def _first_present(obj: Any, *paths: tuple[str | int, ...]) -> Any:
    """First non-None value among ``paths``, even when it isn't a string."""
    for path in paths:
        value = _dig(obj, *path)
        if value is not None:
            return value
    return None


def looks_like_base64(value: str) -> bool:
    return len(value) >= MIN_BASE64_LEN and _BASE64_RE.fullmatch(value) is not None


def _data_url(base64: str, mime_type: Any = None) -> str:
    mime = mime_type if isinstance(mime_type, str) and mime_type else DEFAULT_MIME
    return f"data:{mime};base64,{_WHITESPACE_RE.sub('', base64)}"


def extract_image_url_from_text(text: str) -> str | None:
    """Data URL first, then a markdown image, then any http(s) URL."""
    match = _DATA_URL_RE.search(text)
    if match:
        return match.group(0)
    match = _MARKDOWN_IMAGE_RE.search(text)
    if match:
        return match.group(1)
    match = _PLAIN_URL_RE.search(text)
    if match:
        return _TRAILING_PUNCT_RE.sub("", match.group(0))
    return None


def _from_string(text: str) -> str | None:
    found = extract_image_url_from_text(text)
    if found:
        return found
    if text.startswith("http") or text.startswith("data:image"):
        return text
    return None


def _from_part(part: Any) -> str | None:
    if not isinstance(part, dict):
        return None

    direct = _first_present(
        part,
        ("image_url", "url"),
        ("image_url",),
        ("url",),
        ("image", "url"),
        ("output", 0, "image_url", "url"),
        ("output", 0, "image_url"),
    )
    if isinstance(direct, str) and direct:
        return direct

    base64 = _first_present(
        part,
        ("b64_json",),
        ("image", "b64_json"),
        ("image", "data"),
        ("image_base64",),
        ("base64",),
    )
    mime_type = _first_present(
        part,
        ("mime_type",),
        ("image", "mime_type"),
        ("image", "mimeType"),
        ("content_type",),
        ("contentType",),
    )
    if isinstance(base64, str) and looks_like_base64(base64):
        return _data_url(base64, mime_type)

    text = _first_present(part, ("text",), ("content",))
    if isinstance(text, str):
        return _from_string(text)
    return None


def _walk(value: Any, depth: int, visited: set[int]) -> str | None:
    if depth > MAX_SCAN_DEPTH or not value:
        return None

    if isinstance(value, str):
        found = _from_string(value)
        if found:
            return found
        if looks_like_base64(value):
            return _data_url(value)
        return None

    if not isinstance(value, (dict, list)):
        return None
    if id(value) in visited:
        return None
    visited.add(id(value))

    found = _from_part(value)
    if found:
        return found

    children = value if isinstance(value, list) else list(value.values())
    for child in children:
        found = _walk(child, depth + 1, visited)
        if found:
            return found
    return None


def extract_image_url(message: dict[str, Any] | None) -> str | None:
    if not message:
        return None

    direct = _first_present(
        message,
        ("image_url", "url"),
        ("image_url",),
        ("images", 0, "url"),
        ("images", 0),
        ("output", 0, "image_url", "url"),
        ("output", 0, "image_url"),
    )
    if isinstance(direct, str) and direct:
        return direct

    content = message.get("content")
    if isinstance(content, list):
        for part in content:
            found = _from_part(part)
            if found:
                return found
    elif isinstance(content, str):
        found = _from_string(content)
        if found:
            return found
    elif isinstance(content, dict):
        found = _from_part(content)
        if found:
            return found

    return _walk(message, 0, set())


def extract_text(message: dict[str, Any] | None) -> str | None:
    """Whatever the model said instead of drawing, for the error message."""
    if not message:
        return None

    content = message.get("content")
    if isinstance(content, str) and content.strip():
        return content.strip()

    if isinstance(content, list):
        texts = []
        for part in content:
            text = _first_present(part, ("text",), ("content",))
            if isinstance(text, str) and text.strip():
                texts.append(text.strip())
        if texts:
            return "\n".join(texts)

    text = _first_present(message, ("text",), ("output_text",))
    if isinstance(text, str) and text.strip():
        return text.strip()
    return None


def json_preview(value: Any, limit: int = PREVIEW_LIMIT) -> str | None:
    try:
        dumped = json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return None
    if len(dumped) > limit:
        return f"{dumped[:limit]}…(truncated)"
    return dumped
