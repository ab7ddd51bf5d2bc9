#!/usr/bin/env python3
"""
Re-embedding Script

Re-embeds every unit in a file-backed memory store with the currently
configured embedding model. Run this after changing embedding.mode or
embedding.model; vectors from different models are not comparable.

Usage:
    python scripts/reembed_units.py [--path ~/.mnemo/memory.json] [--dry-run] [--batch-size 50]
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def reembed_units(storage, embedding_svc, batch_size):
    """
    Strip and re-embed every stored unit, saving batch by batch.

    Units in a failed batch are saved without vectors so the index embeds
    them again on its next warm-up.

    Returns:
        (reembedded, errors) unit counts
    """
    from mnemo.common.errors import EmbeddingError

    units = storage.get_all_units()
    for unit in units:
        unit.embedding = None

    reembedded = 0
    errors = 0

    for i in range(0, len(units), batch_size):
        batch = units[i:i + batch_size]
        print(f"[Reembed] Embedding batch {i // batch_size + 1} ({len(batch)} units)...")

        try:
            vectors = embedding_svc.embed([u.content for u in batch])
        except EmbeddingError as e:
            print(f"[Reembed] ERROR: Batch embedding failed: {e}")
            storage.save_units(batch)
            errors += len(batch)
            continue

        for unit, vector in zip(batch, vectors):
            unit.embedding = vector
        storage.save_units(batch)
        reembedded += len(batch)

    return reembedded, errors


def main():
    parser = argparse.ArgumentParser(description="Re-embed stored memory units with the configured model")
    parser.add_argument("--path", type=str, default=None, help="Memory file (default: storage.path from config)")
    parser.add_argument("--dry-run", action="store_true", help="Print what would be done without executing")
    parser.add_argument("--batch-size", type=int, default=50, help="Number of units to embed per call")
    args = parser.parse_args()

    from mnemo.common.config import load_config
    from mnemo.common.embedding_service import EmbeddingService
    from mnemo.common.errors import StorageError
    from mnemo.storage import FileStorage

    config = load_config()
    path = args.path or config.storage.path

    print("[Reembed] Initializing embedding service...")
    embedding_svc = EmbeddingService(
        mode=config.embedding.mode,
        model=config.embedding.model,
        dimensions=config.embedding.dimensions,
        openai_api_key=config.embedding.openai_api_key,
    )
    print(f"[Reembed] Mode: {embedding_svc.mode}, model: {embedding_svc.model}")

    if not embedding_svc.is_available:
        print("[Reembed] ERROR: Embedding service not available")
        sys.exit(1)

    storage = FileStorage(path)
    try:
        units = storage.get_all_units()
    except StorageError as e:
        print(f"[Reembed] ERROR: {e}")
        sys.exit(1)

    total = len(units)
    print(f"[Reembed] Found {total} units in {storage.path}")

    if args.dry_run:
        print("[Reembed] DRY RUN - no changes will be made")
        print(f"[Reembed] Batch size: {args.batch_size}")
        return

    if total == 0:
        print("[Reembed] Nothing to re-embed")
        return

    reembedded, errors = reembed_units(storage, embedding_svc, args.batch_size)

    print(f"[Reembed] Complete: {reembedded} re-embedded, {errors} errors, {total} total")
    if errors:
        sys.exit(1)


if __name__ == "__main__":
    main()
