#!/usr/bin/env python3
"""
Seed Knowledge Documents
========================

Embeds curated knowledge files (YAML, CSV or FAQ text) and writes them to the
configured knowledge store.

Usage:
    python scripts/seed_documents.py data/knowledge_seed.yaml
    python scripts/seed_documents.py --clear faq.txt products.csv
"""

import argparse
import asyncio
from pathlib import Path

# Add src to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from draftdesk.config import get_settings, KnowledgeStoreBackend
from draftdesk.drafting.infrastructure import (
    DocumentIngester,
    EmbeddingProviderAdapter,
    create_vector_store,
    load_seeds,
)
from draftdesk.infrastructure.llm import create_llm_client
from draftdesk.shared.infrastructure.logging import setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the knowledge store with curated documents")
    parser.add_argument("sources", nargs="+", type=Path, help="YAML, CSV or FAQ .txt files")
    parser.add_argument("--clear", action="store_true", help="Delete existing documents first")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Seed every source file; returns the number of stored documents."""
    args = parse_args(argv)
    config = get_settings()
    setup_logging(level=config.log_level, environment=config.environment)

    if config.knowledge_store_backend == KnowledgeStoreBackend.MEMORY:
        print("Warning: in-memory backend selected, documents will not outlive this process")

    store = create_vector_store(config)
    await store.initialize()
    if args.clear:
        print("Clearing existing documents...")
        await store.clear()

    ingester = DocumentIngester(EmbeddingProviderAdapter(create_llm_client(config)), store)

    total = 0
    for source in args.sources:
        seeds = load_seeds(source)
        print(f"Loaded {len(seeds)} documents from {source}")
        ids = await ingester.ingest_seeds(seeds)
        total += len(ids)

    print(f"\nStored {total} documents ({await store.get_document_count()} in store)")
    return total


if __name__ == "__main__":
    asyncio.run(main())
