"""Embedding index for confirmed learnings.

Vectors live in a ChromaDB collection keyed by learning id, with the
content hash, model name and creation time as metadata. The collection has
no embedding function of its own: vectors are computed here by an
EmbeddingModel and written explicitly, so similarity ranking can run over
the raw vectors.

The model (all-MiniLM-L6-v2 via ChromaDB's ONNX default embedding function)
is loaded lazily, once per process. A failed load is remembered and every
later call returns None instead of retrying.
"""
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

import chromadb
from chromadb.utils.embedding_functions import DefaultEmbeddingFunction

from .config import get_embeddings_path

logger = logging.getLogger("pai-seed")

MODEL_NAME = "all-MiniLM-L6-v2"
_COLLECTION_NAME = "seed_embeddings"

# Singleton client (recreated if the store path changes)
_chroma_client = None
_chroma_client_path = None


def _get_client(path: str) -> chromadb.ClientAPI:
    """Get or create the ChromaDB PersistentClient for path."""
    global _chroma_client, _chroma_client_path
    if _chroma_client is None or _chroma_client_path != path:
        _chroma_client = chromadb.PersistentClient(path=path)
        _chroma_client_path = path
    return _chroma_client


def content_hash(content: str) -> str:
    """SHA-256 of content, first 16 hex chars (staleness key)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


# --- Model ---

def _load_default_embedding_function():
    fn = DefaultEmbeddingFunction()
    # First call downloads/loads the ONNX model; do it here so a broken
    # install fails at load time rather than on every embed.
    fn(["warmup"])
    return fn


class EmbeddingModel:
    """Lazily initialized text embedding model.

    Args:
        name: Model name recorded with each stored vector
        loader: Zero-arg callable returning an embedding function that maps
            a list of texts to a list of vectors
    """

    def __init__(self, name: str = MODEL_NAME, loader: Optional[Callable] = None):
        self.name = name
        self._loader = loader or _load_default_embedding_function
        self._fn = None
        self._failed = False

    def _ensure_loaded(self):
        if self._failed:
            return None
        if self._fn is None:
            try:
                self._fn = self._loader()
            except Exception as e:
                logger.warning(f"Embedding model {self.name} unavailable: {e}")
                self._failed = True
                return None
        return self._fn

    @property
    def available(self) -> bool:
        return self._ensure_loaded() is not None

    def embed(self, text: str) -> Optional[List[float]]:
        """Embed one text. Returns None if the model is unavailable or fails."""
        fn = self._ensure_loaded()
        if fn is None:
            return None
        try:
            vectors = fn([text])
            vector = [float(x) for x in vectors[0]]
        except Exception as e:
            logger.warning(f"Embedding failed: {e}")
            return None
        return vector or None


_default_model: Optional[EmbeddingModel] = None


def get_embedding_model() -> EmbeddingModel:
    """Process-wide model instance, created on first use."""
    global _default_model
    if _default_model is None:
        _default_model = EmbeddingModel()
    return _default_model


def reset_embedding_model(model: Optional[EmbeddingModel] = None) -> None:
    """Replace (or clear) the process-wide model. Used by tests."""
    global _default_model
    _default_model = model


def generate_embedding(text: str, model: Optional[EmbeddingModel] = None) -> Optional[List[float]]:
    """Embed text with the given or process-wide model. Never raises."""
    model = model or get_embedding_model()
    return model.embed(text)


# --- Storage ---

@dataclass(frozen=True)
class EmbeddingRecord:
    item_id: str
    vector: List[float]
    content_hash: str
    model: str
    created_at: str


def _to_vector(raw) -> List[float]:
    return [float(x) for x in raw]


class EmbeddingStore:
    """Keyed vector store: one record per learning id."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or get_embeddings_path()

    def _collection(self):
        client = _get_client(self.path)
        return client.get_or_create_collection(
            name=_COLLECTION_NAME,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )

    def store(self, item_id: str, vector: List[float], hash_: str,
              model: str = MODEL_NAME) -> None:
        """Upsert the vector for item_id, replacing any previous record."""
        now_iso = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        self._collection().upsert(
            ids=[item_id],
            embeddings=[list(vector)],
            metadatas=[{"content_hash": hash_, "model": model, "created_at": now_iso}],
        )

    def _records(self, result) -> List[EmbeddingRecord]:
        ids = result.get("ids") or []
        embeddings = result.get("embeddings")
        metadatas = result.get("metadatas")
        if embeddings is None:
            return []
        records = []
        for i, item_id in enumerate(ids):
            meta = (metadatas[i] if metadatas is not None else None) or {}
            records.append(EmbeddingRecord(
                item_id=item_id,
                vector=_to_vector(embeddings[i]),
                content_hash=meta.get("content_hash", ""),
                model=meta.get("model", ""),
                created_at=meta.get("created_at", ""),
            ))
        return records

    def get(self, item_id: str) -> Optional[EmbeddingRecord]:
        result = self._collection().get(ids=[item_id], include=["embeddings", "metadatas"])
        records = self._records(result)
        return records[0] if records else None

    def all(self) -> List[EmbeddingRecord]:
        result = self._collection().get(include=["embeddings", "metadatas"])
        return self._records(result)

    def delete(self, item_id: str) -> None:
        self._collection().delete(ids=[item_id])

    def count(self) -> int:
        return self._collection().count()


# --- Indexing ---

EMBEDDED = "embedded"
SKIPPED = "skipped"
FAILED = "failed"


def embed_item(store: EmbeddingStore, item_id: str, content: str,
               model: Optional[EmbeddingModel] = None) -> str:
    """Embed one learning unless a fresh record already exists.

    Returns:
        "embedded", "skipped" (stored hash matches content) or "failed"
        (model unavailable or inference failed)
    """
    model = model or get_embedding_model()
    hash_ = content_hash(content)

    existing = store.get(item_id)
    if existing is not None and existing.content_hash == hash_ and existing.model == model.name:
        return SKIPPED

    vector = model.embed(content)
    if vector is None:
        return FAILED

    store.store(item_id, vector, hash_, model=model.name)
    return EMBEDDED


def embed_all_missing(items: Iterable, store: Optional[EmbeddingStore] = None,
                      model: Optional[EmbeddingModel] = None) -> dict:
    """Embed every item lacking a current, non-stale vector.

    Args:
        items: Objects with id and content (ConfirmedItem)
        store: Target store (default: configured embeddings path)
        model: Embedding model (default: process-wide instance)

    Returns:
        {"embedded": n, "skipped": n, "failed": n}; one item failing never
        aborts the batch
    """
    store = store or EmbeddingStore()
    model = model or get_embedding_model()
    counts = {EMBEDDED: 0, SKIPPED: 0, FAILED: 0}

    for item in items:
        try:
            status = embed_item(store, item.id, item.content, model)
        except Exception as e:
            logger.warning(f"Embedding {item.id} failed: {e}")
            status = FAILED
        counts[status] += 1

    logger.info(f"embed_all_missing: {counts[EMBEDDED]} embedded, "
                f"{counts[SKIPPED]} skipped, {counts[FAILED]} failed")
    return counts
