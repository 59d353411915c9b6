"""Selector list parsing and candidate ordering for page commands."""

from __future__ import annotations

from typing import Iterable

_OPENERS = {"[": "]", "(": ")"}


def parse_selector_list(raw: str) -> list[str]:
    """Split a comma-joined selector string into an ordered list.

    Commas inside quotes, attribute brackets or pseudo-class parentheses
    belong to the selector, e.g. ``button[title="a,b"], .x:is(.a, .b)``
    yields two entries. Blank entries are dropped.
    """
    out: list[str] = []
    buf: list[str] = []
    quote = ""
    closers: list[str] = []
    escaped = False
    for ch in str(raw or ""):
        if escaped:
            buf.append(ch)
            escaped = False
            continue
        if ch == "\\":
            buf.append(ch)
            escaped = True
            continue
        if quote:
            buf.append(ch)
            if ch == quote:
                quote = ""
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch in _OPENERS:
            closers.append(_OPENERS[ch])
        elif closers and ch == closers[-1]:
            closers.pop()
        elif ch == "," and not closers:
            _flush(buf, out)
            continue
        buf.append(ch)
    _flush(buf, out)
    return out


def build_candidates(primary: Iterable[str], fallback: Iterable[str]) -> list[str]:
    # Caller list first, fallback after; duplicates are kept so positions stay stable.
    return [s for s in (str(x).strip() for x in primary) if s] + [
        s for s in (str(x).strip() for x in fallback) if s
    ]


def _flush(buf: list[str], out: list[str]) -> None:
    text = "".join(buf).strip()
    buf.clear()
    if text:
        out.append(text)
