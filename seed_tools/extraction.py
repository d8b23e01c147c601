"""Candidate extraction: primary semantic extractor with regex fallback.

Decision per transcript:

    START -> ATTEMPT_PRIMARY
      -> PrimarySuccess  -> DONE(candidates, method=acr)
      -> PrimaryEmpty    -> DONE(empty)            (no fallback: valid silence)
      -> PrimaryFailure  -> FALLBACK_REGEX -> DONE (method=regex)

Only infrastructure failures (binary missing, timeout, non-zero exit,
unparsable output) trigger the regex fallback. A successful run that finds
nothing above the confidence threshold is a real answer.
"""
import json
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional, Union

from .config import get_extraction_config
from .signals import (
    Candidate, SIGNAL_TYPES, METHOD_ACR, METHOD_REGEX, detect_learning_signals,
)

logger = logging.getLogger("pai-seed")

# CommandResult statuses
STATUS_OK = "ok"
STATUS_TIMEOUT = "timeout"
STATUS_NOT_FOUND = "not_found"
STATUS_NONZERO_EXIT = "nonzero_exit"
STATUS_PARSE_ERROR = "parse_error"


@dataclass
class CommandResult:
    """Outcome of one external command run. Never carries an exception."""
    status: str
    returncode: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    data: object = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


def run_command(args: List[str], input_text: str = "", timeout: float = 30,
                parse_json: bool = True) -> CommandResult:
    """Run a command with stdin input, bounded by timeout.

    Args:
        args: argv; args[0] is resolved on PATH
        input_text: Text piped to stdin
        timeout: Seconds before the process is killed
        parse_json: Parse stdout as JSON into CommandResult.data

    Returns:
        CommandResult with one of: ok, timeout, not_found, nonzero_exit,
        parse_error
    """
    binary = shutil.which(args[0])
    if not binary:
        return CommandResult(status=STATUS_NOT_FOUND, error=f"binary not found: {args[0]}")

    try:
        result = subprocess.run(
            [binary, *args[1:]],
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(status=STATUS_TIMEOUT, error=f"timed out after {timeout}s")
    except OSError as e:
        return CommandResult(status=STATUS_NOT_FOUND, error=str(e))

    stdout = result.stdout or ""
    stderr = result.stderr or ""
    if result.returncode != 0:
        return CommandResult(
            status=STATUS_NONZERO_EXIT,
            returncode=result.returncode,
            stdout=stdout,
            stderr=stderr,
            error=f"exit {result.returncode}: {stderr.strip() or 'unknown error'}",
        )

    data = None
    if parse_json:
        try:
            data = json.loads(stdout)
        except (json.JSONDecodeError, ValueError):
            return CommandResult(
                status=STATUS_PARSE_ERROR, returncode=0, stdout=stdout,
                stderr=stderr, error="output is not valid JSON",
            )

    return CommandResult(status=STATUS_OK, returncode=0, stdout=stdout,
                         stderr=stderr, data=data)


# --- Primary extractor outcome (tagged variant) ---

@dataclass(frozen=True)
class PrimarySuccess:
    candidates: List[Candidate]
    returned: int


@dataclass(frozen=True)
class PrimaryEmpty:
    returned: int = 0


@dataclass(frozen=True)
class PrimaryFailure:
    kind: str
    error: str


PrimaryOutcome = Union[PrimarySuccess, PrimaryEmpty, PrimaryFailure]


def _learnings_from_output(data) -> Optional[list]:
    """Pull the learnings list out of extractor output, or None if malformed.

    Accepts a bare JSON array or the {"ok": true, "learnings": [...]}
    envelope.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and data.get("ok") is True:
        learnings = data.get("learnings")
        if isinstance(learnings, list):
            return learnings
    return None


def _to_candidate(item) -> Optional[Candidate]:
    if not isinstance(item, dict):
        return None
    signal_type = item.get("type")
    content = item.get("content")
    confidence = item.get("confidence")
    if signal_type not in SIGNAL_TYPES:
        return None
    if not isinstance(content, str) or not content.strip():
        return None
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return None
    if not 0.0 <= confidence <= 1.0:
        return None
    return Candidate(
        type=signal_type,
        content=content.strip(),
        method=METHOD_ACR,
        confidence=float(confidence),
    )


def filter_by_confidence(candidates: List[Candidate], threshold: float) -> List[Candidate]:
    """Keep candidates with confidence >= threshold (boundary inclusive)."""
    return [
        c for c in candidates
        if c.confidence is not None and c.confidence >= threshold
    ]


def call_primary_extractor(text: str, confidence: float, binary: str = "acr",
                           timeout: float = 30) -> PrimaryOutcome:
    """Run the semantic extractor subprocess on normalized text.

    Args:
        text: Normalized, truncated transcript text (sent on stdin)
        confidence: Threshold passed to the extractor and re-applied here
        binary: Extractor executable name or path
        timeout: Seconds before the run counts as an infrastructure failure

    Returns:
        PrimarySuccess, PrimaryEmpty, or PrimaryFailure
    """
    result = run_command(
        [binary, "--extract-learnings", "--json", "--confidence", str(confidence)],
        input_text=text,
        timeout=timeout,
    )
    if not result.ok:
        return PrimaryFailure(kind=result.status, error=result.error)

    learnings = _learnings_from_output(result.data)
    if learnings is None:
        error = "unexpected response format"
        if isinstance(result.data, dict) and result.data.get("ok") is False:
            error = str(result.data.get("error") or "extractor reported failure")
        return PrimaryFailure(kind=STATUS_PARSE_ERROR, error=error)

    candidates = [c for c in (_to_candidate(item) for item in learnings) if c is not None]
    kept = filter_by_confidence(candidates, confidence)
    if not kept:
        return PrimaryEmpty(returned=len(learnings))
    return PrimarySuccess(candidates=kept, returned=len(learnings))


@dataclass
class ExtractionOutcome:
    """Candidates from one transcript plus how they were produced."""
    candidates: List[Candidate] = field(default_factory=list)
    method: Optional[str] = None
    fallback_used: bool = False
    failure: Optional[PrimaryFailure] = None


def extract_candidates(text: str, confidence: Optional[float] = None,
                       acr_binary: Optional[str] = None,
                       timeout: Optional[float] = None) -> ExtractionOutcome:
    """Produce learning candidates from normalized text.

    Unset arguments come from get_extraction_config(). Never raises.
    """
    config = get_extraction_config()
    if confidence is None:
        confidence = float(config.get("confidence", 0.7))
    if acr_binary is None:
        acr_binary = config.get("acr_binary", "acr")
    if timeout is None:
        timeout = float(config.get("timeout_seconds", 30))

    if not text or not text.strip():
        return ExtractionOutcome()

    outcome = call_primary_extractor(text, confidence, binary=acr_binary, timeout=timeout)

    if isinstance(outcome, PrimarySuccess):
        logger.info(f"Primary extractor: {len(outcome.candidates)}/{outcome.returned} "
                    f"candidates at confidence >= {confidence}")
        return ExtractionOutcome(candidates=list(outcome.candidates), method=METHOD_ACR)

    if isinstance(outcome, PrimaryEmpty):
        logger.info(f"Primary extractor found nothing above {confidence} "
                    f"({outcome.returned} returned)")
        return ExtractionOutcome(method=METHOD_ACR)

    logger.warning(f"Primary extractor unavailable ({outcome.kind}: {outcome.error}), "
                   f"falling back to regex")
    return ExtractionOutcome(
        candidates=detect_learning_signals(text),
        method=METHOD_REGEX,
        fallback_used=True,
        failure=outcome,
    )
