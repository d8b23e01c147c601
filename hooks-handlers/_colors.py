"""ANSI colors and dividers for the extraction debug log.

Used by extract_learnings.py; view the log with less -R or tail -f.
"""

C_CYAN = "\033[36m"
C_DIM = "\033[2m"
C_GREEN = "\033[32m"
C_YELLOW = "\033[33m"
C_RED = "\033[31m"
C_RESET = "\033[0m"

_DIVIDER_WIDTH = 80


def divider_thick() -> str:
    """Cyan ═══ line that opens a log entry."""
    return f"{C_CYAN}{'═' * _DIVIDER_WIDTH}{C_RESET}"


def divider_section(label: str) -> str:
    """Dim ─── line with the label centered."""
    pad_total = max(_DIVIDER_WIDTH - len(label) - 2, 2)
    left = pad_total // 2
    right = pad_total - left
    return f"{C_DIM}{'─' * left} {label} {'─' * right}{C_RESET}"


def status_label(ok: bool, ok_text: str, fail_text: str) -> str:
    color = C_GREEN if ok else C_YELLOW
    return f"{color}{ok_text if ok else fail_text}{C_RESET}"
