"""Syntax-aware splitting of oversized code units.

Units whose embedding text exceeds the character budget are cut at line
boundaries, preferring blank lines, then closing braces, then statement ends,
then block openers. The comment preamble (``// File: ...`` etc.) is repeated at
the top of every part so each part still carries its location context.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import List, Optional, Tuple

from .models import CodeUnit

logger = logging.getLogger(__name__)

COMMENT_MARKERS: Tuple[str, ...] = ("//",)


def _split_priority(line: str) -> int:
    """Lower is better; -1 means the line is not a valid split point."""
    trimmed = line.strip()
    if not trimmed:
        return 0
    if trimmed == "}":
        return 1
    if trimmed.endswith(";"):
        return 2
    if trimmed.endswith("{"):
        return 3
    return -1


def find_split_point(lines: List[str]) -> int:
    """Return the interior index to cut after, or -1 if none qualifies.

    Candidates are ranked by priority; ties go to the line closest to the
    buffer's midpoint so parts come out roughly balanced.
    """
    midpoint = len(lines) // 2
    best_index = -1
    best_priority: Optional[int] = None
    best_distance: Optional[int] = None

    for i in range(1, len(lines) - 1):
        priority = _split_priority(lines[i])
        if priority < 0:
            continue
        distance = abs(i - midpoint)
        if (
            best_priority is None
            or priority < best_priority
            or (priority == best_priority and distance < best_distance)
        ):
            best_priority = priority
            best_distance = distance
            best_index = i

    return best_index


def extract_preamble(lines: List[str]) -> Tuple[str, int]:
    """Detect the leading comment block.

    Returns:
        (preamble, content_start) where ``preamble`` is the comment lines
        joined with a trailing blank line (or "" if there is none) and
        ``content_start`` is the index of the first content line.
    """
    preamble_lines: List[str] = []
    content_start = 0

    for i, line in enumerate(lines):
        if line.lstrip().startswith(COMMENT_MARKERS):
            preamble_lines.append(line)
            content_start = i + 1
        elif not line.strip() and preamble_lines:
            content_start = i + 1
            break
        else:
            break

    if not preamble_lines:
        return "", content_start
    return "\n".join(preamble_lines) + "\n\n", content_start


class UnitSplitter:
    """Single forward pass splitter bounded by ``max_chars``.

    The result is reproducible for a given input but not a minimal partition.
    A part can exceed the budget only when no valid split point exists, e.g.
    a single line longer than the budget.
    """

    def __init__(self, max_chars: int = 4000):
        if max_chars <= 0:
            raise ValueError(f"max_chars must be positive, got {max_chars}")
        self.max_chars = max_chars

    def split(self, text: str) -> List[str]:
        if len(text) <= self.max_chars:
            return [text]

        lines = text.split("\n")
        preamble, content_start = extract_preamble(lines)
        if content_start >= len(lines):
            return [text]
        effective_max = self.max_chars - len(preamble)

        parts: List[str] = []
        buf: List[str] = []
        buf_len = 0

        for line in lines[content_start:]:
            line_len = len(line) + 1

            # a buffer of only blank lines rides along with the next line
            if buf and buf_len + line_len > effective_max and any(l.strip() for l in buf):
                split_at = find_split_point(buf)
                if 0 < split_at < len(buf) - 1:
                    parts.append(preamble + "\n".join(buf[: split_at + 1]))
                    buf = buf[split_at + 1 :]
                    buf_len = sum(len(l) + 1 for l in buf)
                else:
                    parts.append(preamble + "\n".join(buf))
                    buf = []
                    buf_len = 0

            buf.append(line)
            buf_len += line_len

        if buf:
            if parts and not any(l.strip() for l in buf):
                # trailing blank lines are folded into the last part
                parts[-1] = parts[-1] + "\n" + "\n".join(buf)
            else:
                parts.append(preamble + "\n".join(buf))

        return parts

    def split_unit(self, unit: CodeUnit) -> List[CodeUnit]:
        """Split one unit into sibling parts, or return it unchanged."""
        if len(unit.embedding_text) <= self.max_chars:
            return [unit]

        texts = self.split(unit.embedding_text)
        if len(texts) == 1:
            return [unit]

        logger.debug(f"Split {unit.file_path}:{unit.start_line} ({unit.label}) into {len(texts)} parts")
        return [
            dataclasses.replace(
                unit,
                id=f"{unit.id}_part{i}",
                embedding_text=part,
                part_index=i,
                total_parts=len(texts),
            )
            for i, part in enumerate(texts)
        ]

    def split_units(self, units: List[CodeUnit]) -> List[CodeUnit]:
        out: List[CodeUnit] = []
        for unit in units:
            out.extend(self.split_unit(unit))
        return out
