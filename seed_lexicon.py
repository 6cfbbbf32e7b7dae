#!/usr/bin/env python3
"""
seed_lexicon.py — Load and embed the neighbor-search lexicon.

Usage:
    python seed_lexicon.py --file words.tsv             # Load terms and embed them
    python seed_lexicon.py --file words.tsv --no-embed  # Load terms only
    python seed_lexicon.py --missing --limit 500        # Embed terms still lacking vectors
    python seed_lexicon.py --missing --json             # Output JSON summary (for CI)

Term file format: one term per line, optionally followed by a tab and
its relative frequency. Blank lines and lines starting with # are skipped.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from vibescope.axes import validate_embedding
from vibescope.config import settings
from vibescope.errors import ProviderError, ValidationError, VibeError
from vibescope.llm.factory import get_provider
from vibescope.logging import get_logger, setup_logging
from vibescope.store import SQLiteVibeStore
from vibescope.validation import validate_term

logger = get_logger("seed")


def parse_term_file(path: Path) -> list[tuple[str, float]]:
    """Read (term, frequency) pairs. Invalid terms are skipped with a warning."""
    entries: list[tuple[str, float]] = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        raw_term, _, raw_freq = line.partition("\t")
        try:
            term = validate_term(raw_term)
            freq = float(raw_freq) if raw_freq.strip() else 1.0
        except (ValidationError, ValueError) as e:
            logger.warning(f"Skipping line {lineno}: {e}")
            continue
        entries.append((term, freq))
    return entries


async def embed_terms(store: SQLiteVibeStore, provider, terms: list[str], concurrency: int = 5) -> dict:
    """Embed terms with bounded concurrency and store their vectors."""
    semaphore = asyncio.Semaphore(concurrency)
    embedded, failed = 0, 0

    async def _one(term: str) -> None:
        nonlocal embedded, failed
        async with semaphore:
            try:
                vector = await provider.embed(term)
                validate_embedding(vector)
            except (ProviderError, ValidationError) as e:
                failed += 1
                logger.warning("Embedding failed", extra={"term": term, "error": e.message})
                return
        store.set_lexicon_embedding(term, vector)
        embedded += 1

    await asyncio.gather(*(_one(t) for t in terms))
    return {"requested": len(terms), "embedded": embedded, "failed": failed}


def main():
    parser = argparse.ArgumentParser(description="VibeScope Lexicon Seeder")
    parser.add_argument(
        "--file",
        help="Term file to load (term[<TAB>frequency] per line)",
    )
    parser.add_argument(
        "--db",
        default=settings.DB_PATH,
        help=f"SQLite database path (default: {settings.DB_PATH})",
    )
    parser.add_argument(
        "--missing",
        action="store_true",
        help="Embed lexicon terms that have no embedding yet",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=1000,
        help="Maximum terms to embed with --missing (default: 1000)",
    )
    parser.add_argument(
        "--no-embed",
        action="store_true",
        help="Load terms without calling the embedding provider",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=5,
        help="Concurrent embedding calls (default: 5)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON only (for CI/automation)",
    )
    args = parser.parse_args()

    if not args.file and not args.missing:
        parser.error("Provide --file, --missing, or both")

    setup_logging()
    store = SQLiteVibeStore(db_path=args.db)
    summary: dict = {"loaded": 0, "requested": 0, "embedded": 0, "failed": 0}

    # Step 1: Load terms
    to_embed: list[str] = []
    if args.file:
        path = Path(args.file)
        if not path.exists():
            print(f"Error: Term file not found: {path}")
            sys.exit(1)
        entries = parse_term_file(path)
        for term, freq in entries:
            store.upsert_lexicon_term(term, freq=freq)
        summary["loaded"] = len(entries)
        to_embed.extend(term for term, _ in entries)
        if not args.json:
            print(f"Loaded {len(entries)} terms from {path}")

    if args.missing:
        for term in store.terms_missing_embeddings(limit=args.limit):
            if term not in to_embed:
                to_embed.append(term)

    # Step 2: Embed
    if to_embed and not args.no_embed:
        provider = get_provider(
            settings.PROVIDER,
            api_key=settings.GEMINI_API_KEY,
            embedding_model=settings.EMBEDDING_MODEL,
            output_dimensionality=settings.EMBEDDING_DIM,
            timeout=settings.PROVIDER_TIMEOUT,
        )
        try:
            provider.check_configured()
        except VibeError as e:
            print(f"Error: {e.message}")
            sys.exit(1)
        summary.update(asyncio.run(
            embed_terms(store, provider, to_embed, concurrency=args.concurrency)
        ))

    summary["lexicon_terms"] = store.lexicon_count()

    # Step 3: Output
    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print(
            f"Embedded {summary['embedded']}/{summary['requested']} terms "
            f"({summary['failed']} failed). Lexicon size: {summary['lexicon_terms']}"
        )

    sys.exit(1 if summary["failed"] else 0)


if __name__ == "__main__":
    main()
