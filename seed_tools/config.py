"""Seed configuration loader with per-section defaults and env overrides."""
import json
import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger("pai-seed")

_config_cache = None

# Environment overrides for extraction thresholds
ENV_CONFIDENCE = "PAI_EXTRACTION_CONFIDENCE"
ENV_MAX_CHARS = "PAI_EXTRACTION_MAX_CHARS"
ENV_SEED_DIR = "PAI_SEED_DIR"
ENV_EMBEDDINGS_DB = "PAI_EMBEDDINGS_DB"
ENV_PAI_DIR = "PAI_DIR"

DEFAULT_CONFIDENCE = 0.7
DEFAULT_MAX_CHARS = 50000


def get_seed_dir() -> Path:
    """Base directory for seed data: $PAI_SEED_DIR or ~/.pai."""
    override = os.environ.get(ENV_SEED_DIR)
    if override:
        return Path(os.path.expanduser(override))
    return Path.home() / ".pai"


def get_config() -> dict:
    """Load config from <seed dir>/config.json with caching."""
    global _config_cache
    if _config_cache is None:
        config_path = get_seed_dir() / "config.json"
        if config_path.exists():
            try:
                with open(config_path) as f:
                    _config_cache = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Unreadable config at {config_path}: {e}")
                _config_cache = {}
        else:
            _config_cache = {}
    return _config_cache


def clear_config_cache():
    """Invalidate the cached config, forcing a re-read on next access."""
    global _config_cache
    _config_cache = None


def _env_unit_float(name: str) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a number")
        return None
    if not 0.0 <= value <= 1.0:
        logger.warning(f"Ignoring {name}={raw!r}: must be between 0 and 1")
        return None
    return value


def _env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer")
        return None
    if value <= 0:
        logger.warning(f"Ignoring {name}={raw!r}: must be positive")
        return None
    return value


def get_extraction_config() -> dict:
    """Get extraction pipeline configuration with defaults.

    Returns config dict with:
    - acr_binary: Name or path of the primary extractor (default "acr")
    - timeout_seconds: Primary extractor timeout (default 30)
    - confidence: Minimum confidence for primary candidates (default 0.7)
    - max_chars: Transcript budget sent to extraction (default 50000)
    - debug: Append pipeline blocks to the debug log (default False)

    PAI_EXTRACTION_CONFIDENCE and PAI_EXTRACTION_MAX_CHARS win over the
    config file. Config lives at "extraction" in <seed dir>/config.json.
    """
    config = get_config()
    defaults = {
        "acr_binary": "acr",
        "timeout_seconds": 30,
        "confidence": DEFAULT_CONFIDENCE,
        "max_chars": DEFAULT_MAX_CHARS,
        "debug": False,
    }
    merged = {**defaults, **config.get("extraction", {})}

    confidence = _env_unit_float(ENV_CONFIDENCE)
    if confidence is not None:
        merged["confidence"] = confidence
    max_chars = _env_int(ENV_MAX_CHARS)
    if max_chars is not None:
        merged["max_chars"] = max_chars
    return merged


def get_retrieval_config() -> dict:
    """Get retrieval configuration with defaults.

    - max_results: Learnings injected at session start (5)
    - min_similarity: Cutoff for session retrieval (0.2)
    - top_k: Results for an explicit search (10)
    - search_min_score: Cutoff for an explicit search (0.5)
    """
    config = get_config()
    defaults = {
        "max_results": 5,
        "min_similarity": 0.2,
        "top_k": 10,
        "search_min_score": 0.5,
    }
    return {**defaults, **config.get("retrieval", {})}


def get_context_config() -> dict:
    """Get session context configuration with defaults.

    - proposal_index_limit: Pending proposals listed by id (10)
    - mode: "full", "complement" or "auto" (complement when $PAI_DIR is set)
    """
    config = get_config()
    defaults = {
        "proposal_index_limit": 10,
        "mode": "auto",
    }
    return {**defaults, **config.get("context", {})}


def get_seed_path() -> str:
    """Resolve the seed file path (config "seed_path" or <seed dir>/seed.json)."""
    configured = get_config().get("seed_path")
    if configured:
        return os.path.expanduser(configured)
    return str(get_seed_dir() / "seed.json")


def get_embeddings_path() -> str:
    """Resolve the embedding store directory.

    Order: $PAI_EMBEDDINGS_DB, config "embeddings_path", <seed dir>/embeddings.
    """
    override = os.environ.get(ENV_EMBEDDINGS_DB)
    if override:
        return os.path.expanduser(override)
    configured = get_config().get("embeddings_path")
    if configured:
        return os.path.expanduser(configured)
    return str(get_seed_dir() / "embeddings")


def get_debug_log_path() -> Path:
    """Debug log written by the extraction hook when debug is on."""
    return get_seed_dir() / "debug.extraction.log"
