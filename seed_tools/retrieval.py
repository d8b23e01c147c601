"""Similarity ranking over stored learning embeddings.

Semantic mode ranks confirmed learnings by cosine similarity between the
context query and each stored vector. When there is nothing to rank with
(no vectors yet, model unavailable, store unreadable, no match above the
floor), retrieval falls back to recency: the most recently confirmed
learnings, marked with mode="recency" so callers never read their zero
score as "irrelevant".
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .embeddings import EmbeddingModel, EmbeddingStore, generate_embedding
from .seed_store import ConfirmedItem

logger = logging.getLogger("pai-seed")

MODE_SEMANTIC = "semantic"
MODE_RECENCY = "recency"

DEFAULT_CONTEXT_QUERY = "general programming"


@dataclass(frozen=True)
class RankedItem:
    item: ConfirmedItem
    score: float
    mode: str = MODE_SEMANTIC


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|), defined as 0.0 when either magnitude is 0.

    Raises:
        ValueError: vectors differ in length
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimension mismatch: {len(a)} != {len(b)}")

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    magnitude = math.sqrt(norm_a) * math.sqrt(norm_b)
    if magnitude == 0:
        return 0.0
    return dot / magnitude


def search_similar(query: str, store: Optional[EmbeddingStore] = None,
                   top_k: int = 10, min_score: float = 0.5,
                   model: Optional[EmbeddingModel] = None) -> List[dict]:
    """Rank every stored vector against the query.

    Returns:
        [{"id", "score"}] sorted by score descending, at most top_k, all
        >= min_score. Empty when the query cannot be embedded or the
        store cannot be read.
    """
    query_vector = generate_embedding(query, model)
    if query_vector is None:
        return []

    try:
        store = store or EmbeddingStore()
        records = store.all()
    except Exception as e:
        logger.warning(f"Embedding store unreadable, no search results: {e}")
        return []

    scored = []
    for record in records:
        if len(record.vector) != len(query_vector):
            # Vector from a different model; unusable until re-embedded
            logger.debug(f"Skipping {record.item_id}: dimension {len(record.vector)}")
            continue
        score = cosine_similarity(query_vector, record.vector)
        if score >= min_score:
            scored.append({"id": record.item_id, "score": score})

    scored.sort(key=lambda s: s["score"], reverse=True)
    return scored[:top_k]


def build_context_query(project: Optional[str] = None, cwd: Optional[str] = None) -> str:
    """Query text from project name plus the last three cwd segments."""
    parts = []
    if project:
        parts.append(project)
    if cwd:
        segments = [s for s in cwd.split("/") if s][-3:]
        if segments:
            parts.append(" ".join(segments))
    return " ".join(parts) or DEFAULT_CONTEXT_QUERY


def recency_fallback(items: List[ConfirmedItem], max_results: int) -> List[RankedItem]:
    """Most recently confirmed (else extracted) first, unscored."""
    ordered = sorted(items, key=lambda item: item.recency_key, reverse=True)
    return [
        RankedItem(item=item, score=0.0, mode=MODE_RECENCY)
        for item in ordered[:max_results]
    ]


def retrieve_relevant_learnings(items: List[ConfirmedItem], context: Optional[dict] = None,
                                max_results: int = 5, min_similarity: float = 0.2,
                                store: Optional[EmbeddingStore] = None,
                                model: Optional[EmbeddingModel] = None) -> List[RankedItem]:
    """Pick the learnings most relevant to the current session.

    Args:
        items: Confirmed learnings (SeedStore.list_confirmed())
        context: {"project": ..., "cwd": ...}, either key optional
        max_results: Upper bound on returned items
        min_similarity: Score floor in semantic mode
        store: Embedding store (default: configured path)
        model: Embedding model (default: process-wide instance)

    Returns:
        RankedItems, semantic (scored) or recency (score 0, mode "recency").
        Empty only when items is empty.
    """
    if not items:
        return []
    context = context or {}

    try:
        store = store or EmbeddingStore()
        if store.count() > 0:
            query = build_context_query(context.get("project"), context.get("cwd"))
            # Search all vectors: stale ids for removed learnings must not
            # crowd out live ones
            similar = search_similar(query, store, top_k=store.count(),
                                     min_score=min_similarity, model=model)
            by_id = {item.id: item for item in items}
            ranked = [
                RankedItem(item=by_id[match["id"]], score=match["score"], mode=MODE_SEMANTIC)
                for match in similar
                if match["id"] in by_id
            ]
            if ranked:
                return ranked[:max_results]
            logger.info("No semantic matches, using recency fallback")
    except Exception as e:
        logger.warning(f"Semantic retrieval failed, using recency fallback: {e}")

    return recency_fallback(items, max_results)
