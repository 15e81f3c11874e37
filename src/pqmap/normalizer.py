"""Text normalization for converted protocol question documents."""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\n\r]")


@dataclass(frozen=True)
class SourceLine:
    """Represent one trimmed document line and its absolute position."""

    index: int
    text: str


def normalize_document(raw_text: str) -> list[SourceLine]:
    """Strip non-printable characters and split text into trimmed lines.

    Args:
        raw_text: Raw text extracted from the converted PDF.

    Returns:
        Ordered lines; empty for empty input. Blank lines are kept so that
        line positions match the source document.
    """
    content = _NON_PRINTABLE.sub("", raw_text)
    lines = [
        SourceLine(index=index, text=line.strip())
        for index, line in enumerate(content.splitlines())
    ]
    logger.debug(f"Document normalized (lines={len(lines)})")
    return lines
