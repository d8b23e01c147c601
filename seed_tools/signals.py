"""Regex signal detection and noise filtering for learning candidates.

Used as the fallback path when the primary extractor cannot run, and for
noise filtering of every candidate regardless of where it came from.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

SIGNAL_TYPES = ("pattern", "insight", "self_knowledge")

METHOD_ACR = "acr"
METHOD_REGEX = "regex"

# Phrase -> signal type. First match per sentence wins (dict order).
SIGNAL_PHRASES = {
    "you prefer": "pattern",
    "you like to": "pattern",
    "you always": "pattern",
    "you usually": "pattern",
    "your preference": "pattern",
    "your style": "pattern",
    "you tend to": "pattern",
    "i learned": "insight",
    "i noticed": "insight",
    "i discovered": "insight",
    "key insight": "insight",
    "important finding": "insight",
    "takeaway": "insight",
    "the lesson": "insight",
    "note to self": "self_knowledge",
    "remember that": "self_knowledge",
    "i should remember": "self_knowledge",
    "for next time": "self_knowledge",
    "mental note": "self_knowledge",
    "i need to remember": "self_knowledge",
}

# Structural signatures that disqualify a sentence even when a phrase matches
NOISE_PATTERNS = {
    "bold_label": re.compile(r"^\s*(?:[-*+]\s+)?\*\*[^*\n]{1,80}?(?::\*\*|\*\*\s*:)"),
    "box_drawing": re.compile(r"[─-╿▀-▟]"),
    "rule_line": re.compile(r"^\s*(?:[-=_*~]\s*){3,}$"),
    "table_row": re.compile(r"^\s*\|"),
    "table_border": re.compile(r"^\s*\+[-=+]{2,}"),
    "numbered_bracket": re.compile(r"^\s*(?:\[\d+\]|\(\d+\)|\d+\))\s"),
    "workflow_phase": re.compile(
        r"\b(?:OBSERVE|THINK|PLAN|BUILD|EXECUTE|VERIFY|LEARN)\b\s*(?::|\(|\d|PHASE\b)"
        r"|^\s*(?:#+\s*)?[Pp]hase\s*\d+\s*[:.)\-]"
        r"|\bPHASE\s*\d+\b"
        r"|^\s*Step\s+\d+\s*[:.)]"
    ),
}

_MIN_SENTENCE_CHARS = 10

# Characters allowed immediately before a phrase match (word boundary)
_BOUNDARY_CHARS = re.compile(r"[\s.,;:!?\-()\[\]\"']")

_SENTENCE_BREAKS = re.compile(r"\.\n|\. |! |\? |\n")
_LEADING_PUNCT = re.compile(r"^[\s\-*#>|+!?.,;:•]+\s*")


@dataclass(frozen=True)
class Candidate:
    """A learning signal awaiting the proposal quality gate."""
    type: str
    content: str
    method: str
    confidence: Optional[float] = None
    matched_phrase: str = ""


def split_sentences(text: str) -> List[str]:
    """Split on ". ", ".\\n", "! ", "? " and newlines (never on a bare ".")."""
    return [s.strip() for s in _SENTENCE_BREAKS.split(text) if s.strip()]


def clean_sentence(sentence: str) -> str:
    """Trim, normalize smart quotes, drop leading bullet punctuation."""
    cleaned = sentence.strip()
    cleaned = cleaned.replace("“", '"').replace("”", '"')
    cleaned = cleaned.replace("‘", "'").replace("’", "'")
    cleaned = _LEADING_PUNCT.sub("", cleaned)
    return cleaned.strip()


def noise_reason(text: str) -> Optional[str]:
    """Name of the first noise pattern matching text, or None."""
    for name, pattern in NOISE_PATTERNS.items():
        if pattern.search(text):
            return name
    return None


def is_noise(text: str) -> bool:
    return noise_reason(text) is not None


def _match_phrase(lowered: str) -> Optional[str]:
    for phrase in SIGNAL_PHRASES:
        idx = lowered.find(phrase)
        if idx == -1:
            continue
        if idx > 0 and not _BOUNDARY_CHARS.match(lowered[idx - 1]):
            continue
        return phrase
    return None


def detect_learning_signals(text: str) -> List[Candidate]:
    """Find sentences carrying a learning signal phrase.

    Each sentence is checked against the noise patterns in both raw and
    cleaned form; noisy sentences never become candidates.

    Args:
        text: Normalized transcript text

    Returns:
        Candidates tagged method="regex", in transcript order
    """
    if not text or not text.strip():
        return []

    signals = []
    for sentence in split_sentences(text):
        cleaned = clean_sentence(sentence)
        if len(cleaned) < _MIN_SENTENCE_CHARS:
            continue

        phrase = _match_phrase(cleaned.lower())
        if phrase is None:
            continue
        if is_noise(sentence) or is_noise(cleaned):
            continue

        signals.append(Candidate(
            type=SIGNAL_PHRASES[phrase],
            content=cleaned,
            method=METHOD_REGEX,
            matched_phrase=phrase,
        ))
    return signals
