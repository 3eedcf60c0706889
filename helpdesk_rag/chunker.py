"""Splits long knowledge documents into overlapping, size-bounded segments."""

import re

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_INLINE_SPACE = re.compile(r"[ \t\f\v]+")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")


def normalize_whitespace(text: str) -> str:
    """Collapse inline runs of whitespace and excess blank lines; keep paragraph breaks."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [_INLINE_SPACE.sub(" ", line).strip() for line in text.split("\n")]
    return _EXTRA_NEWLINES.sub("\n\n", "\n".join(lines)).strip()


def _split_units(text: str, max_size: int) -> list[tuple[str, bool]]:
    """Break text into (unit, starts_paragraph) pairs.

    Paragraphs that fit are kept whole; longer ones are split into sentences.
    """
    units: list[tuple[str, bool]] = []
    for paragraph in _PARAGRAPH_BREAK.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) <= max_size:
            units.append((paragraph, True))
            continue
        sentences = [s.strip() for s in _SENTENCE_END.split(paragraph) if s.strip()]
        for i, sentence in enumerate(sentences):
            units.append((sentence, i == 0))
    return units


def _hard_split(segment: str, max_size: int, overlap: int) -> list[str]:
    stride = max_size - overlap
    pieces = []
    start = 0
    while True:
        pieces.append(segment[start:start + max_size])
        if start + max_size >= len(segment):
            break
        start += stride
    return pieces


def chunk(text: str, max_size: int = 1000, overlap: int = 200) -> list[str]:
    """Split text into segments of at most ``max_size`` characters.

    Paragraph boundaries are preferred, then sentence boundaries. Each new
    segment starts with the last ``overlap`` characters of the previous one.
    Segments that still exceed ``max_size`` (e.g. text without punctuation)
    are cut into fixed windows with stride ``max_size - overlap``.
    """
    if max_size <= 0:
        raise ValueError("max_size must be positive")
    if overlap < 0 or overlap >= max_size:
        raise ValueError("overlap must be in [0, max_size)")

    normalized = normalize_whitespace(text)
    if not normalized:
        return []
    if len(normalized) <= max_size:
        return [normalized]

    segments: list[str] = []
    current = ""
    for unit, starts_paragraph in _split_units(normalized, max_size):
        joiner = "\n\n" if starts_paragraph else " "
        candidate = f"{current}{joiner}{unit}" if current else unit
        if len(candidate) <= max_size or not current:
            current = candidate
            continue

        segments.append(current)
        tail = current[-overlap:].strip() if overlap else ""
        current = f"{tail}{joiner}{unit}" if tail else unit
    if current:
        segments.append(current)

    result = []
    for segment in segments:
        pieces = [segment] if len(segment) <= max_size else _hard_split(segment, max_size, overlap)
        result.extend(p.strip() for p in pieces if p.strip())
    return result
