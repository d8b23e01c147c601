"""Transcript normalization: JSONL transcript -> plain conversational text.

Pipeline:
1. parse_transcript: keep user/assistant text blocks, skip tool blocks
2. strip_structured_content: drop code fences, tool envelopes, large JSON
3. truncate_for_extraction: keep the tail (decisions cluster at the end)

Nothing in this module raises on bad input. Malformed lines are skipped and
the worst case is an empty string.
"""
import json
import logging
import re
from typing import Union

logger = logging.getLogger("pai-seed")

_CONVERSATION_TYPES = ("user", "assistant")

PLACEHOLDER = " [...] "

_FENCED_CODE_BLOCK = re.compile(r"^[ \t]*```.*?^[ \t]*```[^\n]*", re.MULTILINE | re.DOTALL)
# A fence opened and never closed swallows the rest of the text
_UNTERMINATED_FENCE = re.compile(r"^[ \t]*```.*\Z", re.MULTILINE | re.DOTALL)
_LINE_NUMBER_PREFIX = re.compile(r"^[ \t]*\d+[→│|].*$", re.MULTILINE)
_TOOL_BLOCKS = re.compile(
    r"<((?:\w+:)?(?:function_calls|invoke|tool_use|tool_result|function_results))\b[^>]*>"
    r".*?</\1>",
    re.DOTALL,
)
_INLINE_JSON = re.compile(r"\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}")
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")

_MAX_INLINE_JSON_CHARS = 200


def _extract_text(content) -> str:
    """Text of a message content field (plain string or list of blocks)."""
    if isinstance(content, str):
        return content.strip()
    if not isinstance(content, list):
        return ""
    texts = [
        block.get("text", "")
        for block in content
        if isinstance(block, dict) and block.get("type") == "text"
        and isinstance(block.get("text"), str)
    ]
    return "\n".join(texts).strip()


def parse_transcript(raw: Union[str, bytes]) -> str:
    """Parse JSONL transcript records into plain conversational text.

    Keeps only records whose type is user or assistant. String content is
    used as-is; block lists contribute only their text blocks (tool_use and
    tool_result blocks are skipped). Fragments are joined with a blank line.

    Args:
        raw: Transcript as text or bytes, one JSON record per line

    Returns:
        Joined text, or "" when nothing usable is found
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw:
        return ""

    fragments = []
    for line in raw.split("\n"):
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except (json.JSONDecodeError, ValueError):
            continue
        if not isinstance(entry, dict):
            continue
        if entry.get("type") not in _CONVERSATION_TYPES:
            continue

        message = entry.get("message", {})
        if not isinstance(message, dict):
            continue
        text = _extract_text(message.get("content", []))
        if text:
            fragments.append(text)

    return "\n\n".join(fragments)


def _replace_large_json(match: re.Match) -> str:
    text = match.group(0)
    return PLACEHOLDER if len(text) > _MAX_INLINE_JSON_CHARS else text


def strip_structured_content(text: str) -> str:
    """Strip structured regions that produce false learning signals.

    Code fences, tool envelopes and inline JSON over 200 chars become a
    " [...] " placeholder so sentence boundaries around them survive.
    Line-numbered dump lines are removed. 3+ newlines collapse to 2.
    """
    if not text:
        return ""
    cleaned = _FENCED_CODE_BLOCK.sub(PLACEHOLDER, text)
    cleaned = _UNTERMINATED_FENCE.sub(PLACEHOLDER, cleaned)
    cleaned = _LINE_NUMBER_PREFIX.sub("", cleaned)
    cleaned = _TOOL_BLOCKS.sub(PLACEHOLDER, cleaned)
    cleaned = _INLINE_JSON.sub(_replace_large_json, cleaned)
    cleaned = _EXCESS_BLANK_LINES.sub("\n\n", cleaned)
    return cleaned


def truncate_for_extraction(text: str, max_chars: int = 50000) -> str:
    """Keep the last max_chars characters, starting at a paragraph boundary.

    Identity when the text already fits. A tail window that already opens
    on a paragraph (or, lacking paragraphs, a line) is kept whole. Otherwise
    it is trimmed forward past its first blank line (or first line break)
    so no sentence is cut in half.
    """
    if len(text) <= max_chars:
        return text

    head = text[:-max_chars]
    tail = text[-max_chars:]
    boundary = tail.find("\n\n")
    if head.endswith("\n\n"):
        # Window already opens on a paragraph
        result = tail
    elif boundary != -1:
        result = tail[boundary + 2:]
    elif head.endswith("\n"):
        result = tail
    else:
        newline = tail.find("\n")
        result = tail[newline + 1:] if newline != -1 else tail

    if not result.strip():
        result = tail

    logger.info(
        f"Transcript truncated for extraction: {len(text)} -> {len(result)} chars "
        f"(limit {max_chars})"
    )
    return result


def normalize_transcript(raw: Union[str, bytes], max_chars: int = 50000) -> str:
    """parse -> strip -> truncate."""
    text = parse_transcript(raw)
    text = strip_structured_content(text)
    return truncate_for_extraction(text, max_chars)


def read_transcript(transcript_path: str) -> str:
    """Read a transcript file, returning "" if it cannot be read."""
    try:
        with open(transcript_path, encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as e:
        logger.warning(f"Cannot read transcript {transcript_path}: {e}")
        return ""
