"""Proposal assembly: candidates -> quality-gated, deduplicated proposals.

All list operations here are pure: inputs are never mutated, every step
returns a new list. The seed store does the actual persistence.
"""
import logging
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Union

from .config import get_extraction_config
from .extraction import extract_candidates
from .secret_scan import describe_findings, scan_for_secrets
from .seed_store import SeedStore
from .signals import Candidate, is_noise
from .transcript import normalize_transcript

logger = logging.getLogger("pai-seed")

MAX_PROPOSAL_CONTENT_LENGTH = 200
ELLIPSIS = "..."
MIN_CONTENT_CHARS = 20
MIN_WORD_CHARS = 3
MIN_STRIPPED_CHARS = 10
DEFAULT_SOURCE = "unknown-session"

_WHITESPACE = re.compile(r"\s+")
_WORD_CHAR = re.compile(r"\w")
_MARKDOWN_PUNCT = re.compile(r"[*_#>`|~\-\[\]()!:=+]")


def normalize_content_key(content: str) -> str:
    """Dedup key: lowercase, whitespace collapsed."""
    return _WHITESPACE.sub(" ", content).strip().lower()


def dedupe_candidates(candidates: List[Candidate]) -> List[Candidate]:
    """Drop repeated content within one run (first occurrence wins)."""
    seen = set()
    unique = []
    for candidate in candidates:
        key = normalize_content_key(candidate.content)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def passes_quality_gate(content: str) -> bool:
    """Minimum-content check that blocks label-only artifacts.

    Rejects content shorter than 20 chars once trimmed, with fewer than 3
    word characters, or shorter than 10 chars once markdown punctuation
    is stripped (a bare "**Takeaway:**" header, for example).
    """
    trimmed = content.strip()
    if len(trimmed) < MIN_CONTENT_CHARS:
        return False
    if len(_WORD_CHAR.findall(trimmed)) < MIN_WORD_CHARS:
        return False
    stripped = _WHITESPACE.sub(" ", _MARKDOWN_PUNCT.sub("", trimmed)).strip()
    return len(stripped) >= MIN_STRIPPED_CHARS


def truncate_content(content: str, max_chars: int = MAX_PROPOSAL_CONTENT_LENGTH) -> str:
    if len(content) <= max_chars:
        return content
    return content[:max_chars] + ELLIPSIS


def new_proposal_id() -> str:
    return secrets.token_urlsafe(16)


@dataclass
class AssemblyResult:
    """Finished proposals plus counts of what was filtered out."""
    proposals: List[dict] = field(default_factory=list)
    duplicates: int = 0
    noise: int = 0
    low_quality: int = 0
    secrets: int = 0
    secret_findings: List[dict] = field(default_factory=list)

    @property
    def rejected(self) -> dict:
        return {
            "duplicates": self.duplicates,
            "noise": self.noise,
            "low_quality": self.low_quality,
            "secrets": self.secrets,
        }


def assemble_proposals(candidates: List[Candidate],
                       session_id: Optional[str] = None) -> AssemblyResult:
    """Turn candidates into pending proposal records.

    Steps: dedupe -> noise blocklist -> quality gate -> secret scan ->
    truncate to 200 chars -> id, timestamp, status "pending".

    Args:
        candidates: Candidates from extract_candidates (any method)
        session_id: Recorded as the proposal source

    Returns:
        AssemblyResult; rejections are counted, never raised
    """
    result = AssemblyResult()
    unique = dedupe_candidates(candidates)
    result.duplicates = len(candidates) - len(unique)

    source = session_id or DEFAULT_SOURCE
    now_iso = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    for candidate in unique:
        content = candidate.content.strip()
        if is_noise(content):
            result.noise += 1
            continue
        if not passes_quality_gate(content):
            result.low_quality += 1
            continue
        findings = scan_for_secrets(content)
        if findings:
            result.secrets += 1
            result.secret_findings.extend(
                {"learning_type": candidate.type, **finding} for finding in findings
            )
            logger.warning(f"Dropped {candidate.type} candidate containing "
                           f"{describe_findings(findings)}")
            continue

        proposal = {
            "id": new_proposal_id(),
            "type": candidate.type,
            "content": truncate_content(content),
            "source": source,
            "extractedAt": now_iso,
            "status": "pending",
            "method": candidate.method,
        }
        if candidate.confidence is not None:
            proposal["confidence"] = candidate.confidence
        result.proposals.append(proposal)

    return result


def write_proposals(proposals: List[dict], store: Optional[SeedStore] = None) -> dict:
    """Hand finished proposals to the seed store (append semantics)."""
    store = store or SeedStore()
    return store.append_proposals(proposals)


def extraction_hook(transcript: Union[str, bytes], session_id: Optional[str] = None,
                    store: Optional[SeedStore] = None,
                    max_chars: Optional[int] = None,
                    confidence: Optional[float] = None) -> dict:
    """End-to-end extraction for one session transcript.

    normalize -> extract (primary, regex only on infra failure) ->
    assemble -> append to the seed store. Never raises.

    Returns:
        {"success", "added", "skipped", "total", "method", "fallback_used",
         "rejected"} or {"success": False, "error"}
    """
    try:
        config = get_extraction_config()
        if max_chars is None:
            max_chars = int(config.get("max_chars", 50000))

        text = normalize_transcript(transcript, max_chars)
        outcome = extract_candidates(text, confidence=confidence)
        assembled = assemble_proposals(outcome.candidates, session_id)

        summary = {
            "success": True,
            "added": 0,
            "skipped": 0,
            "total": len(assembled.proposals),
            "method": outcome.method,
            "fallback_used": outcome.fallback_used,
            "rejected": assembled.rejected,
        }
        if assembled.secret_findings:
            summary["secret_findings"] = assembled.secret_findings
        if outcome.failure is not None:
            summary["primary_error"] = f"{outcome.failure.kind}: {outcome.failure.error}"

        if not assembled.proposals:
            return summary

        write_result = write_proposals(assembled.proposals, store)
        if not write_result.get("success"):
            return {"success": False, "error": write_result.get("error", "write failed")}

        summary["added"] = write_result["added"]
        summary["skipped"] = write_result["skipped"]
        summary["proposals"] = assembled.proposals
        return summary
    except Exception as e:
        logger.error(f"extraction_hook failed: {e}", exc_info=True)
        return {"success": False, "error": str(e)}
