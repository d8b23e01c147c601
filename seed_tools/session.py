"""Session-start context block.

Sections, in order, joined by blank lines:
    version -> identity -> relevant learnings -> proposal index -> session state

In complement mode the identity section is left out: another PAI layer
(signalled by $PAI_DIR) already injects it.
"""
import logging
import math
import os
from dataclasses import dataclass
from typing import List, Optional

from .config import ENV_PAI_DIR, get_context_config, get_retrieval_config
from .embeddings import EmbeddingModel, EmbeddingStore
from .retrieval import MODE_RECENCY, RankedItem, retrieve_relevant_learnings
from .seed_store import SeedStore

logger = logging.getLogger("pai-seed")

PROPOSAL_PREVIEW_CHARS = 40
SETUP_NEEDED_MESSAGE = "PAI seed needs setup. Run the setup wizard to configure your identity."

CONTEXT_FULL = "full"
CONTEXT_COMPLEMENT = "complement"


def format_identity_summary(identity: dict) -> str:
    prefs = identity.get("preferences") or {}
    lines = [
        f"Identity: {identity.get('aiName', 'PAI')} "
        f"(working with {identity.get('principalName', 'User')})",
    ]
    if identity.get("catchphrase"):
        lines.append(f"Catchphrase: \"{identity['catchphrase']}\"")
    lines.append(
        f"Style: {prefs.get('responseStyle', 'adaptive')} | "
        f"Timezone: {prefs.get('timezone', 'UTC')} | "
        f"Locale: {prefs.get('locale', 'en-US')}"
    )
    return "\n".join(lines)


def format_session_state(state: dict) -> str:
    lines = [f"Last session: {state.get('lastSessionAt') or 'never'}"]
    projects = state.get("activeProjects") or []
    lines.append(f"Active projects: {', '.join(projects) if projects else 'none'}")
    if state.get("checkpointRef"):
        lines.append(f"Checkpoint: {state['checkpointRef']}")
    return "\n".join(lines)


def format_relevant_learnings(ranked: List[RankedItem], total: int) -> str:
    """Render ranked learnings; "" when there are none.

    Semantic results show their similarity. Recency results get their own
    header and no score, since their 0.0 is not a similarity.
    """
    if not ranked:
        return ""

    if ranked[0].mode == MODE_RECENCY:
        lines = [f"Recent learnings ({len(ranked)} of {total}):"]
        for r in ranked:
            lines.append(f"- [{r.item.type}] {r.item.content}")
    else:
        lines = [f"Relevant learnings ({len(ranked)} of {total}):"]
        for r in ranked:
            lines.append(f"- [{r.item.type}] {r.item.content} (similarity {r.score:.2f})")
    return "\n".join(lines)


def format_proposal_index(proposals: List[dict], limit: int = 10) -> str:
    """Compact one-line-per-proposal index of pending proposals."""
    pending = [p for p in proposals if p.get("status") == "pending"]
    if not pending:
        return ""

    lines = [f"Pending proposals ({len(pending)}):"]
    for p in pending[:limit]:
        content = str(p.get("content", ""))
        preview = content[:PROPOSAL_PREVIEW_CHARS]
        if len(content) > PROPOSAL_PREVIEW_CHARS:
            preview += "..."
        line = f"  {str(p.get('id', ''))[:8]} [{p.get('type', '?')}] {preview}"
        if isinstance(p.get("confidence"), (int, float)):
            line += f" (conf {p['confidence']:.2f})"
        lines.append(line)

    remaining = len(pending) - min(len(pending), limit)
    if remaining > 0:
        lines.append(f"  ... and {remaining} more")
    return "\n".join(lines)


def resolve_context_mode(mode: Optional[str] = None) -> str:
    """Explicit mode, else the configured one, else auto-detect from $PAI_DIR."""
    mode = mode or get_context_config().get("mode", "auto")
    if mode in (CONTEXT_FULL, CONTEXT_COMPLEMENT):
        return mode
    return CONTEXT_COMPLEMENT if os.environ.get(ENV_PAI_DIR) else CONTEXT_FULL


def estimate_tokens(text: str) -> int:
    """Rough token count: ceil(chars / 4)."""
    return math.ceil(len(text) / 4)


@dataclass
class SessionContext:
    context: str
    token_estimate: int
    learnings_shown: int = 0
    learnings_total: int = 0
    proposals_shown: int = 0
    proposals_total: int = 0
    mode: Optional[str] = None
    context_mode: str = CONTEXT_FULL

    def to_dict(self) -> dict:
        return {
            "context": self.context,
            "token_estimate": self.token_estimate,
            "learnings_shown": self.learnings_shown,
            "learnings_total": self.learnings_total,
            "proposals_shown": self.proposals_shown,
            "proposals_total": self.proposals_total,
            "mode": self.mode,
            "context_mode": self.context_mode,
        }


def assemble_session_context(store: Optional[SeedStore] = None,
                             context: Optional[dict] = None,
                             identity_block: Optional[str] = None,
                             state_block: Optional[str] = None,
                             embedding_store: Optional[EmbeddingStore] = None,
                             model: Optional[EmbeddingModel] = None,
                             mode: Optional[str] = None) -> SessionContext:
    """Compose the session-start context block from the seed.

    Args:
        store: Seed store (default: configured seed path)
        context: {"project": ..., "cwd": ...} used for relevance ranking
        identity_block: Pre-rendered identity text; rendered from the seed
            identity layer when omitted
        state_block: Pre-rendered session state; rendered from the seed
            state layer when omitted
        embedding_store: Embedding store for semantic ranking
        model: Embedding model for the context query
        mode: "full" or "complement" (default: resolve_context_mode())

    Raises:
        SeedStoreError: seed file unreadable
    """
    store = store or SeedStore()
    retrieval_config = get_retrieval_config()
    context_config = get_context_config()

    context_mode = resolve_context_mode(mode)

    seed = store.load()
    sections = [f"Seed: v{seed.get('version') or 'unknown'}"]

    if context_mode == CONTEXT_FULL:
        if identity_block is None:
            identity_block = format_identity_summary(seed.get("identity") or {})
        if identity_block:
            sections.append(identity_block)

    items = store.list_confirmed()
    ranked = retrieve_relevant_learnings(
        items,
        context,
        max_results=int(retrieval_config.get("max_results", 5)),
        min_similarity=float(retrieval_config.get("min_similarity", 0.2)),
        store=embedding_store,
        model=model,
    )
    learnings_block = format_relevant_learnings(ranked, len(items))
    if learnings_block:
        sections.append(learnings_block)

    limit = int(context_config.get("proposal_index_limit", 10))
    pending = [p for p in seed["state"].get("proposals", []) if p.get("status") == "pending"]
    proposal_block = format_proposal_index(pending, limit)
    if proposal_block:
        sections.append(proposal_block)

    if state_block is None:
        state_block = format_session_state(seed["state"])
    if state_block:
        sections.append(state_block)

    text = "\n\n".join(sections)
    return SessionContext(
        context=text,
        token_estimate=estimate_tokens(text),
        learnings_shown=len(ranked),
        learnings_total=len(items),
        proposals_shown=min(len(pending), limit),
        proposals_total=len(pending),
        mode=ranked[0].mode if ranked else None,
        context_mode=context_mode,
    )


def session_start_hook(seed_path: Optional[str] = None, context: Optional[dict] = None,
                       embedding_store: Optional[EmbeddingStore] = None,
                       model: Optional[EmbeddingModel] = None,
                       mode: Optional[str] = None) -> str:
    """Context text for injection at session start. Always returns a string."""
    try:
        store = SeedStore(seed_path)
        if not store.exists():
            return SETUP_NEEDED_MESSAGE
        result = assemble_session_context(store, context,
                                          embedding_store=embedding_store, model=model,
                                          mode=mode)
        logger.info(f"Session context: ~{result.token_estimate} tokens, "
                    f"{result.learnings_shown}/{result.learnings_total} learnings "
                    f"({result.mode}), {result.proposals_shown}/{result.proposals_total} proposals, "
                    f"{result.context_mode} mode")
        return result.context
    except Exception as e:
        logger.error(f"session_start_hook failed: {e}")
        return f"PAI session context error: {e}"
