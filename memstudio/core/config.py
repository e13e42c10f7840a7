"""
Runtime configuration for Memory Studio.
Values come from the environment; feature flags are re-read on each call so tests can flip them.
"""

import os
from pathlib import Path

# Data directory holding the canonical record store and the vector store
DATA_PATH = os.getenv("STUDIO_DATA_PATH", "./.studio")

DB_PATH = os.getenv("DB_PATH", os.path.join(DATA_PATH, "local.db"))
VECTOR_DB_PATH = os.getenv("VECTOR_DB_PATH", os.path.join(DATA_PATH, "vectors.db"))

DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Vector system configuration
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "sqlite")  # sqlite|memory|faiss
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence-transformers
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
EMBED_DIMENSION = int(os.getenv("EMBED_DIMENSION", "384"))

# SQLite contention handling
DB_BUSY_TIMEOUT_MS = int(os.getenv("DB_BUSY_TIMEOUT_MS", "5000"))
DB_MAX_RETRIES = int(os.getenv("DB_MAX_RETRIES", "3"))
DB_RETRY_BASE_DELAY = float(os.getenv("DB_RETRY_BASE_DELAY", "0.1"))

# API server
HOST = os.getenv("HOST", "127.0.0.1")  # Localhost only by default
PORT = int(os.getenv("PORT", "5000"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
    ).split(",")
    if origin.strip()
]

# Search defaults
DEFAULT_SEARCH_LIMIT = 20
DEFAULT_HYBRID_WEIGHT = 0.7
DEFAULT_LIST_LIMIT = 50
MAX_PAGE_LIMIT = 100

VERSION = "0.3.0"


def get_db_path() -> str:
    return os.getenv("DB_PATH", DB_PATH)


def get_vector_db_path() -> str:
    return os.getenv("VECTOR_DB_PATH", VECTOR_DB_PATH)


def get_vector_store():
    """Get configured vector store implementation. Returns None if vector features disabled."""
    if not are_vector_features_enabled():
        return None

    provider = os.getenv("VECTOR_PROVIDER", VECTOR_PROVIDER)
    dimension = int(os.getenv("EMBED_DIMENSION", str(EMBED_DIMENSION)))

    if provider == "memory":
        from ..vector.index import SimpleInMemoryVectorStore
        return SimpleInMemoryVectorStore()
    elif provider == "faiss":
        from ..vector.faiss_store import FaissVectorStore
        return FaissVectorStore(dimension=dimension)
    else:
        from ..vector.sqlite_store import SqliteVectorStore
        return SqliteVectorStore(get_vector_db_path(), dimension=dimension)


def get_embedding_provider():
    """Get configured embedding provider implementation. Returns None if vector features disabled."""
    if not are_vector_features_enabled():
        return None

    provider = os.getenv("EMBED_PROVIDER", EMBED_PROVIDER)
    dimension = int(os.getenv("EMBED_DIMENSION", str(EMBED_DIMENSION)))

    if provider == "sentence-transformers":
        from ..vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(os.getenv("EMBED_MODEL_NAME", EMBED_MODEL_NAME))
    else:
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=dimension)


def are_vector_features_enabled():
    """Check if vector features are enabled."""
    return os.getenv("VECTOR_ENABLED", "true").lower() == "true"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def ensure_data_directory(path: str = None):
    """Ensure the directory holding a database file exists."""
    Path(path or get_db_path()).parent.mkdir(parents=True, exist_ok=True)


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if os.getenv("VECTOR_PROVIDER", VECTOR_PROVIDER) not in ["sqlite", "memory", "faiss"]:
        issues.append(f"Invalid VECTOR_PROVIDER: {os.getenv('VECTOR_PROVIDER')}")

    if os.getenv("EMBED_PROVIDER", EMBED_PROVIDER) not in ["hash", "sentence-transformers"]:
        issues.append(f"Invalid EMBED_PROVIDER: {os.getenv('EMBED_PROVIDER')}")

    if EMBED_DIMENSION < 1:
        issues.append("EMBED_DIMENSION must be >= 1")

    if DB_MAX_RETRIES < 1:
        issues.append("DB_MAX_RETRIES must be >= 1")

    if DB_RETRY_BASE_DELAY < 0:
        issues.append("DB_RETRY_BASE_DELAY must be >= 0")

    return issues
