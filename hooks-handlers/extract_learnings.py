#!/usr/bin/env python3
"""Stop hook: extract learning proposals from a finished session.

Usage: python3 extract_learnings.py <transcript_path> [session_id]

Pipeline:
1. Read the transcript JSONL
2. Normalize (user/assistant text only, structure stripped, tail-truncated)
3. Primary extractor (acr); regex fallback only if it cannot run
4. Dedupe, noise/quality/secret gates, truncate
5. Append pending proposals to the seed file

Always exits 0: a failed extraction must never block the session from
ending. Diagnostics go to stderr.
"""
import os
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


def _debug_log(transcript_path: str, session_id: str, result: dict,
               text_chars: int, debug: bool = False) -> None:
    """Append one colored entry to the extraction debug log."""
    if not debug:
        return

    try:
        from _colors import C_RED, C_RESET, divider_section, divider_thick, status_label
        from seed_tools.config import get_debug_log_path
        from seed_tools.secret_scan import describe_findings

        timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
        added = result.get("added", 0)

        lines = [divider_thick()]
        lines.append(
            f"{timestamp} | {session_id} | {text_chars} chars | "
            f"{status_label(added > 0, f'ADDED {added}', 'NONE')}"
        )

        lines.append(divider_section("INPUT"))
        lines.append(f"  Transcript: {transcript_path}")

        lines.append(divider_section("RESULT"))
        if not result.get("success"):
            lines.append(f"  {C_RED}error: {result.get('error')}{C_RESET}")
        else:
            lines.append(f"  Method:     {result.get('method') or 'none'}")
            lines.append(f"  Fallback:   {result.get('fallback_used', False)}")
            if result.get("primary_error"):
                lines.append(f"  Primary:    {result['primary_error']}")
            lines.append(f"  Total:      {result.get('total', 0)}")
            lines.append(f"  Added:      {added}")
            lines.append(f"  Skipped:    {result.get('skipped', 0)}")
            rejected = result.get("rejected") or {}
            lines.append("  Rejected:   " + ", ".join(f"{k}={v}" for k, v in rejected.items()))
            if result.get("secret_findings"):
                lines.append(f"  {C_RED}Secrets:    {describe_findings(result['secret_findings'])}{C_RESET}")
            for proposal in result.get("proposals", []):
                lines.append(f"    {proposal['id'][:8]} [{proposal['type']}] {proposal['content']}")

        lines.append("")

        log_path = get_debug_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a") as f:
            f.write("\n".join(lines) + "\n")
    except Exception:
        # Debug logging never affects the hook's outcome
        pass


def main():
    """Run extraction for one transcript and report on stderr."""
    if len(sys.argv) < 2:
        print("Usage: extract_learnings.py <transcript_path> [session_id]", file=sys.stderr)
        sys.exit(0)

    transcript_path = sys.argv[1]
    session_id = sys.argv[2] if len(sys.argv) >= 3 else "unknown-session"

    if not os.path.isfile(transcript_path):
        print(f"Transcript not found: {transcript_path}", file=sys.stderr)
        sys.exit(0)

    try:
        from seed_tools.config import get_extraction_config
        from seed_tools.proposals import extraction_hook
        from seed_tools.transcript import read_transcript
    except ImportError as e:
        print(f"pai-seed not importable: {e}", file=sys.stderr)
        sys.exit(0)

    debug = get_extraction_config().get("debug", False)
    raw = read_transcript(transcript_path)
    if not raw.strip():
        print("Empty transcript, nothing to extract", file=sys.stderr)
        sys.exit(0)

    result = extraction_hook(raw, session_id=session_id)
    _debug_log(transcript_path, session_id, result, len(raw), debug)

    if not result.get("success"):
        print(f"Extraction failed: {result.get('error')}", file=sys.stderr)
        sys.exit(0)

    if result.get("fallback_used"):
        print(f"Primary extractor unavailable ({result.get('primary_error')}), used regex fallback",
              file=sys.stderr)

    if result.get("added"):
        print(f"Added {result['added']} proposal(s) via {result['method']}"
              f" ({result.get('skipped', 0)} already pending)", file=sys.stderr)
    else:
        print("No new proposals (nothing above threshold or all duplicates)", file=sys.stderr)


if __name__ == "__main__":
    main()
