#!/usr/bin/env python3
"""
Index Rebuild Utility
Rebuilds the vector index from the canonical memories table after model changes or lost vectors.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from memstudio.core.config import get_vector_store, get_embedding_provider, are_vector_features_enabled, get_db_path
from memstudio.core.dao import MemoryRepository
from memstudio.core.db import Database
from memstudio.vector.indexing import rebuild_index


def main():
    """Rebuild vector index from the memories table."""
    parser = argparse.ArgumentParser(description="Rebuild the Memory Studio vector index")
    parser.add_argument("--db-path", default=None, help="Record store path (default: DB_PATH)")
    parser.add_argument("--batch-size", type=int, default=32, help="Memories embedded per batch")
    parser.add_argument("--verify", default="architecture", help="Query used for the post-rebuild smoke search")
    args = parser.parse_args()

    if not are_vector_features_enabled():
        print("ERROR: Vector features disabled. Set VECTOR_ENABLED=true")
        sys.exit(1)

    database = Database(args.db_path or get_db_path())
    database.init_db()
    repository = MemoryRepository(database)

    vector_store = get_vector_store()
    embedding_provider = get_embedding_provider()
    if not vector_store or not embedding_provider:
        print("ERROR: Vector store or embedding provider not available")
        sys.exit(1)

    records = repository.all_records()
    print(f"Found {len(records)} memories in {database.path}")
    print(f"Embedding with {embedding_provider.model_id} into {vector_store.__class__.__name__}...")

    indexed = rebuild_index(records, vector_store, embedding_provider, batch_size=args.batch_size)
    print(f"✓ Successfully rebuilt index with {indexed} vectors")

    # Quick smoke test - search for something
    if indexed:
        results = vector_store.search(embedding_provider.embed_text(args.verify), top_k=min(3, indexed))
        print(f"✓ Verification search returned {len(results)} results")
    else:
        print("✓ No entries to verify (empty index)")

    print("Index rebuild complete!")


if __name__ == "__main__":
    main()
