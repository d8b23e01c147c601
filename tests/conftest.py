"""Pytest fixtures for pai-seed tests."""
import json
from pathlib import Path
from typing import Generator

import pytest


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Strip env overrides that would leak host settings into tests."""
    for name in ("PAI_EXTRACTION_CONFIDENCE", "PAI_EXTRACTION_MAX_CHARS",
                 "PAI_SEED_DIR", "PAI_EMBEDDINGS_DB", "PAI_DIR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_seed_dir(tmp_path) -> Generator[Path, None, None]:
    """Create a temporary seed directory."""
    seed_dir = tmp_path / "pai"
    seed_dir.mkdir()
    yield seed_dir


@pytest.fixture
def mock_config(temp_seed_dir: Path, monkeypatch):
    """Point the config module at a temporary seed dir and config file."""
    import seed_tools.config as config_module

    monkeypatch.setenv("PAI_SEED_DIR", str(temp_seed_dir))
    config_module.clear_config_cache()

    config_file = temp_seed_dir / "config.json"
    config_file.write_text(json.dumps({}))

    # Return helper to modify config
    class ConfigHelper:
        def __init__(self):
            self.path = config_file
            self.seed_dir = temp_seed_dir
            self.seed_path = temp_seed_dir / "seed.json"
            self.embeddings_path = temp_seed_dir / "embeddings"

        def set(self, **kwargs):
            """Update config values."""
            data = json.loads(self.path.read_text()) if self.path.exists() else {}
            data.update(kwargs)
            self.path.write_text(json.dumps(data))
            config_module.clear_config_cache()

        def delete_key(self, key: str):
            """Remove a key from config."""
            data = json.loads(self.path.read_text())
            data.pop(key, None)
            self.path.write_text(json.dumps(data))
            config_module.clear_config_cache()

        def delete_file(self):
            """Delete the config file entirely."""
            if self.path.exists():
                self.path.unlink()
            config_module.clear_config_cache()

        def write_seed(self, seed: dict):
            """Write a seed file in the temp seed dir."""
            self.seed_path.write_text(json.dumps(seed))

    yield ConfigHelper()
    config_module.clear_config_cache()


@pytest.fixture(autouse=True)
def cleanup_chroma_client():
    """Reset the ChromaDB client and embedding model after each test."""
    yield
    import seed_tools.embeddings as embeddings_module
    embeddings_module._chroma_client = None
    embeddings_module._chroma_client_path = None
    embeddings_module.reset_embedding_model()


# Small fixed vocabulary so similarity is predictable: each text becomes a
# vector of word counts over VOCAB.
VOCAB = [
    "python", "testing", "pytest", "git", "commit", "docker", "deploy",
    "typescript", "bun", "database", "sql", "review", "style", "coffee",
]


def keyword_vector(text: str) -> list:
    words = [w.strip(".,:;!?\"'()").lower() for w in text.split()]
    return [float(words.count(term)) for term in VOCAB]


@pytest.fixture
def fake_model():
    """EmbeddingModel backed by a keyword-count embedding function."""
    from seed_tools.embeddings import EmbeddingModel

    calls = []

    def embed_fn(texts):
        calls.extend(texts)
        return [keyword_vector(t) for t in texts]

    model = EmbeddingModel(name="fake-model", loader=lambda: embed_fn)
    model.calls = calls
    return model


@pytest.fixture
def unavailable_model():
    """EmbeddingModel whose load always fails."""
    from seed_tools.embeddings import EmbeddingModel

    attempts = []

    def loader():
        attempts.append(1)
        raise RuntimeError("model download failed")

    model = EmbeddingModel(name="broken-model", loader=loader)
    model.attempts = attempts
    return model


@pytest.fixture
def embedding_store(temp_seed_dir):
    """EmbeddingStore in a temp directory."""
    from seed_tools.embeddings import EmbeddingStore
    return EmbeddingStore(str(temp_seed_dir / "embeddings"))


@pytest.fixture
def mock_subprocess(monkeypatch):
    """Mock subprocess.run (and shutil.which) for the primary extractor."""
    import shutil
    import subprocess
    from unittest.mock import Mock

    class SubprocessMock:
        """Helper to mock subprocess.run with custom behaviors."""
        def __init__(self):
            self.call_count = 0
            self.calls = []
            self.mock_return = None
            self.mock_side_effect = None
            self.binary_present = True

        def set_return(self, returncode=0, stdout="", stderr=""):
            """Set what subprocess.run should return."""
            result = Mock()
            result.returncode = returncode
            result.stdout = stdout
            result.stderr = stderr
            self.mock_return = result

        def set_json(self, data):
            """Successful run printing data as JSON."""
            self.set_return(stdout=json.dumps(data))

        def set_side_effect(self, side_effect):
            """Set a side effect (e.g., exception)."""
            self.mock_side_effect = side_effect

        def set_missing(self):
            """Make the binary lookup fail."""
            self.binary_present = False

        def which(self, name, *args, **kwargs):
            return f"/usr/local/bin/{name}" if self.binary_present else None

        def __call__(self, *args, **kwargs):
            """Mock implementation of subprocess.run."""
            self.call_count += 1
            self.calls.append((args, kwargs))
            if self.mock_side_effect:
                if isinstance(self.mock_side_effect, Exception):
                    raise self.mock_side_effect
                return self.mock_side_effect(*args, **kwargs)
            return self.mock_return if self.mock_return else Mock(returncode=0, stdout="[]", stderr="")

    mock = SubprocessMock()
    monkeypatch.setattr(subprocess, "run", mock)
    monkeypatch.setattr(shutil, "which", mock.which)
    return mock


def make_record(kind: str, content) -> str:
    """One transcript JSONL line."""
    return json.dumps({"type": kind, "message": {"role": kind, "content": content}})


@pytest.fixture
def transcript_file(tmp_path):
    """Write transcript lines to a .jsonl file and return its path."""
    def _write(lines, name="session.jsonl"):
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n")
        return path
    return _write
