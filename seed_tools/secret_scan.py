"""Credential screening for learning proposals.

Proposal content is lifted straight out of conversation text, where pasted
keys and connection strings are common. A candidate with any finding here
never reaches the seed file; only the redacted previews are kept, for the
extraction summary and the hook debug log.
"""
import re
from typing import List, Optional

# Ordered most specific first so an Anthropic key reports as such, not as
# a generic sk- key
SECRET_PATTERNS = {
    "anthropic_key": r"sk-ant-[A-Za-z0-9_\-]{20,}",
    "openai_key": r"\bsk-[A-Za-z0-9]{32,}",
    "aws_key": r"AKIA[0-9A-Z]{16}",
    "github_token": r"gh[ps]_[A-Za-z0-9_]{36,}",
    "private_key": r"-----BEGIN (RSA|EC|DSA|OPENSSH) PRIVATE KEY-----",
    "jwt_token": r"eyJ[A-Za-z0-9_-]{10,}\.eyJ[A-Za-z0-9_-]{10,}",
    "generic_secret": (
        r"(?i)(api[_-]?key|secret|password|auth_token)\s*[:=]\s*"
        r"['\"]?([A-Za-z0-9_/+=-]{8,})"
    ),
    "connection_string": r"(?i)(postgres|mysql|mongodb|redis)://[^\s]+",
    "bearer_token": r"(?i)Bearer\s+[A-Za-z0-9_.\-]{20,}",
}

_compiled: Optional[dict] = None


def _get_compiled() -> dict:
    global _compiled
    if _compiled is None:
        _compiled = {
            name: re.compile(pattern)
            for name, pattern in SECRET_PATTERNS.items()
        }
    return _compiled


def redact(match_text: str, visible_chars: int = 4) -> str:
    """Keep both ends, mask the middle (at most 20 stars): "AKIA****MPLE"."""
    if len(match_text) <= visible_chars * 2:
        return "*" * len(match_text)
    masked = "*" * min(len(match_text) - visible_chars * 2, 20)
    return f"{match_text[:visible_chars]}{masked}{match_text[-visible_chars:]}"


def scan_for_secrets(content: str) -> List[dict]:
    """Find credential-shaped substrings in one proposal's content.

    A span claimed by an earlier (more specific) pattern is not reported
    again by a later one.

    Returns:
        [{"type", "redacted_preview"}] in pattern order; empty when clean
    """
    findings = []
    claimed = []
    for secret_type, pattern in _get_compiled().items():
        for match in pattern.finditer(content):
            start, end = match.span()
            if any(start < c_end and c_start < end for c_start, c_end in claimed):
                continue
            claimed.append((start, end))
            findings.append({
                "type": secret_type,
                "redacted_preview": redact(match.group(0)),
            })
    return findings


def describe_findings(findings: List[dict]) -> str:
    """One-line summary for logs: "aws_key (AKIA****MPLE), ..."."""
    return ", ".join(f"{f['type']} ({f['redacted_preview']})" for f in findings)
