"""Seed file store: proposals, confirmed learnings, identity and state.

The seed file is a single JSON document:

    {
      "version": "1.0.0",
      "identity": {...},
      "learned": {"patterns": [...], "insights": [...], "selfKnowledge": [...]},
      "state": {"proposals": [...], "activeProjects": [...], ...}
    }

This module is the thin I/O collaborator behind the extraction and
retrieval core. Single-writer by assumption; no locking.
"""
import copy
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .config import get_seed_path

logger = logging.getLogger("pai-seed")

# learned-layer key -> signal type
LEARNED_CATEGORIES = {
    "patterns": "pattern",
    "insights": "insight",
    "selfKnowledge": "self_knowledge",
}

DEFAULT_SEED = {
    "version": "1.0.0",
    "identity": {
        "principalName": "User",
        "aiName": "PAI",
        "catchphrase": "PAI here, ready to go.",
        "voiceId": "default",
        "preferences": {
            "responseStyle": "adaptive",
            "timezone": "UTC",
            "locale": "en-US",
        },
    },
    "learned": {"patterns": [], "insights": [], "selfKnowledge": []},
    "state": {"proposals": [], "activeProjects": []},
}


class SeedStoreError(Exception):
    """Raised when the seed file exists but cannot be read or written."""
    pass


@dataclass(frozen=True)
class ConfirmedItem:
    """Read-only view of an accepted learning."""
    id: str
    type: str
    content: str
    extracted_at: str = ""
    confirmed_at: Optional[str] = None
    source: str = ""
    tags: tuple = field(default_factory=tuple)

    @property
    def recency_key(self) -> str:
        return self.confirmed_at or self.extracted_at or ""


class SeedStore:
    """JSON-file backed seed store."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or get_seed_path())

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> dict:
        """Load the seed, returning a fresh default when the file is missing."""
        if not self.path.exists():
            return copy.deepcopy(DEFAULT_SEED)
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise SeedStoreError(f"Cannot read seed file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise SeedStoreError(f"Seed file {self.path} is not a JSON object")

        # Fill missing layers so callers can index without guards
        seed = copy.deepcopy(DEFAULT_SEED)
        seed.update(data)
        seed["learned"] = {**DEFAULT_SEED["learned"], **(data.get("learned") or {})}
        seed["state"] = {**copy.deepcopy(DEFAULT_SEED["state"]), **(data.get("state") or {})}
        return seed

    def save(self, seed: dict) -> None:
        """Atomically write the seed (tempfile + os.replace)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(seed, f, indent=2)
                f.write("\n")
            os.replace(tmp_path, self.path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def append_proposals(self, proposals: List[dict]) -> dict:
        """Append proposals, skipping content already proposed (case-insensitive).

        Returns:
            {"success": True, "added": n, "skipped": m} or
            {"success": False, "error": ...}
        """
        if not proposals:
            return {"success": True, "added": 0, "skipped": 0}

        try:
            seed = self.load()
            existing = {
                str(p.get("content", "")).lower()
                for p in seed["state"].get("proposals", [])
            }
            added = 0
            skipped = 0
            for proposal in proposals:
                key = proposal["content"].lower()
                if key in existing:
                    skipped += 1
                    continue
                seed["state"].setdefault("proposals", []).append(dict(proposal))
                existing.add(key)
                added += 1

            if added:
                self.save(seed)
            return {"success": True, "added": added, "skipped": skipped}
        except (SeedStoreError, OSError) as e:
            logger.error(f"append_proposals failed: {e}")
            return {"success": False, "error": str(e)}

    def list_proposals(self, status: Optional[str] = None) -> List[dict]:
        proposals = self.load()["state"].get("proposals", [])
        if status is None:
            return list(proposals)
        return [p for p in proposals if p.get("status") == status]

    def list_confirmed(self) -> List[ConfirmedItem]:
        """All accepted learnings across categories, category order preserved."""
        learned = self.load()["learned"]
        items = []
        for key, signal_type in LEARNED_CATEGORIES.items():
            for entry in learned.get(key) or []:
                if not isinstance(entry, dict) or entry.get("confirmed") is False:
                    continue
                if not entry.get("id") or not entry.get("content"):
                    continue
                items.append(ConfirmedItem(
                    id=entry["id"],
                    type=signal_type,
                    content=entry["content"],
                    extracted_at=entry.get("extractedAt", ""),
                    confirmed_at=entry.get("confirmedAt"),
                    source=entry.get("source", ""),
                    tags=tuple(entry.get("tags") or ()),
                ))
        return items


def resolve_id_prefix(items: List[dict], prefix: str, min_length: int = 4) -> dict:
    """Resolve a short id prefix (as shown in the proposal index) to a full id.

    An exact id match always wins. Otherwise the prefix must be at least
    min_length chars and match exactly one item.

    Returns:
        {"success": True, "id": ...} or {"success": False, "error": ...}
    """
    for item in items:
        if item.get("id") == prefix:
            return {"success": True, "id": prefix}

    if len(prefix) < min_length:
        return {
            "success": False,
            "error": f"ID prefix too short: '{prefix}' (minimum {min_length} characters)",
        }

    matches = [item["id"] for item in items if str(item.get("id", "")).startswith(prefix)]
    if not matches:
        return {"success": False, "error": f"No item matching '{prefix}'"}
    if len(matches) > 1:
        listed = ", ".join(m[:12] for m in matches)
        return {"success": False, "error": f"Ambiguous prefix '{prefix}', matches: {listed}"}
    return {"success": True, "id": matches[0]}
