"""Human-readable previews of characteristic payloads."""

from __future__ import annotations

import unicodedata

from blescan.core.model import CharacteristicProperties

_TEXT_WHITESPACE = frozenset("\t\r\n")


def hex_preview(payload: bytes) -> str:
    return "0x" + payload.hex()


def text_preview(payload: bytes) -> str | None:
    """Decode ``payload`` as UTF-8 if the result reads as text, else ``None``.

    A lone combining mark or control characters mean the bytes only happen to
    be valid UTF-8: ``b"\\xde\\xad"`` decodes to U+07AD and is rejected.
    Trailing NUL padding is dropped, but a payload of nothing but NULs is a
    zero value, not text.
    """
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if not text:
        return text
    text = text.rstrip("\x00")
    if not text:
        return None
    if unicodedata.category(text[0]).startswith("M"):
        return None
    if not all(ch.isprintable() or ch in _TEXT_WHITESPACE for ch in text):
        return None
    return text


def decode_preview(payload: bytes, properties: CharacteristicProperties) -> str | None:
    """Return text for readable payloads, or ``0x``-prefixed hex otherwise.

    Characteristics that can neither be read nor notify never get a preview.
    """
    if not (properties.read or properties.notify):
        return None
    text = text_preview(payload)
    if text is None:
        return hex_preview(payload)
    return text
