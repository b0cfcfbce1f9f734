# src/runscripts/core/text.py
from __future__ import annotations
import re

# CSI / OSC / одиночные ESC-последовательности (цвета, курсор, гиперссылки)
_ANSI_RE = re.compile(
    r"(?:\x1b\][^\x07\x1b]*(?:\x07|\x1b\\))"
    r"|(?:\x1b\[[0-?]*[ -/]*[@-~])"
    r"|(?:\x9b[0-?]*[ -/]*[@-~])"
    r"|(?:\x1b[@-Z\\-_])"
)


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def decode_output(raw: bytes, *, strip: bool = False) -> str:
    text = raw.decode("utf-8", errors="replace")
    return strip_ansi(text) if strip else text
