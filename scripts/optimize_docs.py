"""CLI script to run the full documentation pipeline on local files.

Usage:
    cd backend
    uv run python ../scripts/optimize_docs.py --er-text ../data/er-note.txt \
        --hp-pdf ../data/hp.pdf --mcg-pdf ../data/mcg-sepsis.pdf
    uv run python ../scripts/optimize_docs.py --er-pdf ../data/er.pdf \
        --hp-pdf ../data/hp.pdf --mcg-pdf ../data/mcg-sepsis.pdf --output result.json
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import json
import sys
from pathlib import Path

# Add backend to path so imports work when run from backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from cdi_optimizer.errors import PipelineError
from cdi_optimizer.models.schemas import OptimizeRequest
from cdi_optimizer.services.optimizer_service import optimize_documents


def encode_file(path: Path) -> str:
    return base64.b64encode(path.read_bytes()).decode("ascii")


def build_request(args: argparse.Namespace) -> OptimizeRequest:
    return OptimizeRequest(
        er_text=args.er_text.read_text(encoding="utf-8") if args.er_text else None,
        er_pdf_base64=encode_file(args.er_pdf) if args.er_pdf else None,
        hp_pdf_base64=encode_file(args.hp_pdf),
        mcg_pdf_base64=encode_file(args.mcg_pdf),
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Rewrite clinical notes and list guideline gaps"
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--er-text", type=Path, help="ER notes as a plain text file")
    group.add_argument("--er-pdf", type=Path, help="ER notes as a PDF")
    parser.add_argument("--hp-pdf", type=Path, required=True, help="Inpatient H&P PDF")
    parser.add_argument("--mcg-pdf", type=Path, required=True, help="MCG guideline PDF")
    parser.add_argument("--output", type=Path, default=None, help="Write JSON here")
    args = parser.parse_args()

    for path in (args.er_text, args.er_pdf, args.hp_pdf, args.mcg_pdf):
        if path is not None and not path.exists():
            print(f"Error: File not found: {path}")
            sys.exit(1)

    try:
        result = asyncio.run(optimize_documents(build_request(args)))
    except PipelineError as e:
        print(f"Error [{e.code}]: {e.message}")
        sys.exit(1)

    payload = json.dumps(result.model_dump(exclude_none=True), indent=2)
    if args.output:
        args.output.write_text(payload, encoding="utf-8")
        print(f"Wrote {args.output}")
    else:
        print(payload)


if __name__ == "__main__":
    main()
