# app/services/text_highlighter.py
"""
Wrap evaluator highlight phrases inside the submitted text with <b>...</b> markers.

Rules:
  - empty / whitespace-only phrases are ignored
  - longer phrases are applied first, so "I like school." wins over "school"
  - a phrase only matches on a boundary of the underlying text: start/end,
    whitespace or . ! ?  (markers already in the text are looked through)
  - matching is case-insensitive and keeps the original casing of the text
  - text already inside <b>...</b> is never touched, so re-applying is a no-op
"""
import re
from typing import Iterable, List, Tuple

OPEN_MARK = "<b>"
CLOSE_MARK = "</b>"

_BOUNDARY_CHARS = set(".!?")
_MARKED_SPAN = re.compile(f"({re.escape(OPEN_MARK)}.*?{re.escape(CLOSE_MARK)})", re.DOTALL)
_MARKS = re.compile(f"{re.escape(OPEN_MARK)}|{re.escape(CLOSE_MARK)}")


def _is_boundary(char: str) -> bool:
    return char == "" or char.isspace() or char in _BOUNDARY_CHARS


def _char_before(text: str, pos: int) -> str:
    while True:
        if text.endswith(CLOSE_MARK, 0, pos):
            pos -= len(CLOSE_MARK)
        elif text.endswith(OPEN_MARK, 0, pos):
            pos -= len(OPEN_MARK)
        else:
            return text[pos - 1] if pos > 0 else ""


def _char_after(text: str, pos: int) -> str:
    while True:
        if text.startswith(OPEN_MARK, pos):
            pos += len(OPEN_MARK)
        elif text.startswith(CLOSE_MARK, pos):
            pos += len(CLOSE_MARK)
        else:
            return text[pos] if pos < len(text) else ""


def _ordered_phrases(phrases: Iterable[str]) -> List[str]:
    cleaned = [p.strip() for p in phrases if p and p.strip()]
    return sorted(cleaned, key=len, reverse=True)


def _apply_phrase(text: str, phrase: str) -> str:
    # one scan over the whole string: marked spans are skipped as a unit,
    # plain matches are kept only when both neighbours are boundaries
    pattern = re.compile(
        f"({re.escape(OPEN_MARK)}.*?{re.escape(CLOSE_MARK)})|{re.escape(phrase)}",
        re.IGNORECASE | re.DOTALL,
    )
    out = []
    copied = 0
    pos = 0
    while True:
        match = pattern.search(text, pos)
        if match is None:
            break
        if match.group(1) is not None:
            pos = match.end()
            continue
        start, end = match.span()
        if _is_boundary(_char_before(text, start)) and _is_boundary(_char_after(text, end)):
            out.append(text[copied:start])
            out.append(f"{OPEN_MARK}{match.group(0)}{CLOSE_MARK}")
            copied = pos = end
        else:
            # retry one character later so overlapping occurrences are still found
            pos = start + 1
    out.append(text[copied:])
    return "".join(out)


def highlight_text(text: str, phrases: Iterable[str] | None) -> str:
    highlighted = text
    for phrase in _ordered_phrases(phrases or []):
        highlighted = _apply_phrase(highlighted, phrase)
    return highlighted


def strip_highlights(highlighted: str) -> str:
    return _MARKS.sub("", highlighted)


def highlight_stats(highlighted: str) -> Tuple[int, List[str]]:
    """Return (number of marked spans, their inner text)."""
    spans = [
        strip_highlights(s).strip()
        for s in _MARKED_SPAN.findall(highlighted)
    ]
    return len(spans), spans
