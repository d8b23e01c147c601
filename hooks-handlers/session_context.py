#!/usr/bin/env python3
"""SessionStart hook: print the seed context block to stdout.

Usage: python3 session_context.py [project] [cwd]

cwd defaults to the current directory; project defaults to its basename.
Output is injected into the session as-is. Always exits 0.
"""
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


def main():
    project = sys.argv[1] if len(sys.argv) >= 2 else ""
    cwd = sys.argv[2] if len(sys.argv) >= 3 else os.getcwd()
    if not project:
        project = os.path.basename(cwd.rstrip("/"))

    try:
        from seed_tools.session import session_start_hook
    except ImportError as e:
        print(f"pai-seed not importable: {e}", file=sys.stderr)
        sys.exit(0)

    text = session_start_hook(context={"project": project, "cwd": cwd})
    if text:
        print(text)


if __name__ == "__main__":
    main()
