"""CLI script to inspect BM25 guideline retrieval without any generation call.

Usage:
    cd backend
    uv run python ../scripts/rank_guideline.py --guideline ../data/mcg-sepsis.pdf --notes ../data/er-note.txt
    uv run python ../scripts/rank_guideline.py --guideline ../data/mcg.txt --query "lactate hypotension" --top-k 3
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add backend to path so imports work when run from backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from cdi_optimizer.errors import ExtractionError
from cdi_optimizer.services.chunker import chunk_text
from cdi_optimizer.services.document_extractor import extract_pdf_text
from cdi_optimizer.services.ranker import rank_chunks


def load_text(path: Path) -> str:
    """Read a .pdf via pypdf, anything else as UTF-8 text."""
    if path.suffix.lower() == ".pdf":
        return extract_pdf_text(path.read_bytes(), field=path.name, label="Guideline")
    return path.read_text(encoding="utf-8")


def main() -> None:
    parser = argparse.ArgumentParser(description="Rank guideline chunks against notes")
    parser.add_argument("--guideline", type=Path, required=True, help="Guideline .pdf or .txt")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--notes", type=Path, help="Notes file (.pdf or .txt) used as the query")
    group.add_argument("--query", type=str, help="Literal query text")
    parser.add_argument("--top-k", type=int, default=5, help="Number of chunks to show")
    parser.add_argument("--min-len", type=int, default=400, help="Chunk soft minimum length")
    parser.add_argument("--max-len", type=int, default=700, help="Chunk soft maximum length")
    args = parser.parse_args()

    for path in (args.guideline, args.notes):
        if path is not None and not path.exists():
            print(f"Error: File not found: {path}")
            sys.exit(1)

    try:
        guideline = load_text(args.guideline)
        query = load_text(args.notes) if args.notes else args.query
    except ExtractionError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    chunks = chunk_text(guideline, min_len=args.min_len, max_len=args.max_len)
    print(f"Guideline: {len(guideline)} chars -> {len(chunks)} chunks")

    ranked = rank_chunks(query, chunks, args.top_k)
    for position, r in enumerate(ranked, start=1):
        print(f"\n#{position}  chunk {r.chunk_index}  score={r.score:.3f}  ({len(r.text)} chars)")
        print(r.text)


if __name__ == "__main__":
    main()
