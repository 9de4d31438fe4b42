"""Answer prompt construction from fused search hits."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

import tiktoken

from ..core.models import FusedHit

logger = logging.getLogger(__name__)

SYSTEM_PREAMBLE = (
    "You are a code intelligence assistant. Answer the developer's question using ONLY "
    "the code context provided below. Always cite your sources with file path and line numbers."
)

INSTRUCTIONS = [
    "Answer based ONLY on the code context above",
    "Reference sources as [1], [2], etc.",
    "Include file paths and line numbers in your answer",
    "If the context doesn't contain enough information, say so explicitly",
]


def _get_token_counter(model: Optional[str] = None) -> Callable[[str], int]:
    try:
        encoding = tiktoken.encoding_for_model(model) if model else tiktoken.get_encoding("cl100k_base")
    except (KeyError, ValueError, OSError) as e:
        # unknown model name or BPE file not downloadable
        logger.debug(f"tiktoken encoding unavailable ({e}), estimating tokens from length")

        def count_tokens(text: str) -> int:
            return max(1, int(len(text) / 3.5))

        return count_tokens

    def count_tokens(text: str) -> int:
        return len(encoding.encode(text))

    return count_tokens


def count_tokens(text: str, model: Optional[str] = None) -> int:
    return _get_token_counter(model)(text)


def _format_source(index: int, hit: FusedHit) -> str:
    code = hit.body or hit.embedding_text or "(no source available)"
    return (
        f"### [{index}] {hit.file_path}:{hit.start_line}-{hit.end_line} ({hit.label})\n"
        f"```csharp\n{code.rstrip()}\n```\n"
    )


def build_answer_prompt(question: str, hits: List[FusedHit]) -> str:
    """Numbered snippets, the question, and citation instructions."""
    sections = [SYSTEM_PREAMBLE, "", "## Code Context", ""]
    for i, hit in enumerate(hits, start=1):
        sections.append(_format_source(i, hit))
    sections.append("## Question")
    sections.append(question.strip())
    sections.append("")
    sections.append("## Instructions")
    sections.extend(f"- {line}" for line in INSTRUCTIONS)
    return "\n".join(sections) + "\n"
