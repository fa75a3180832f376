#!/usr/bin/env python3
"""Command-line interface for marking a single essay."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import yaml

from econmarker.errors import MarkingError
from econmarker.libs.config_loader import load_default_configs
from .marker import create_essay_marker

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
LOG = logging.getLogger(__name__)


def _read_text(path: Path) -> str:
    if not path.is_file():
        LOG.error(f"File does not exist: {path}")
        sys.exit(1)
    return path.read_text(encoding='utf-8')


def _dump(data: dict, output: Optional[Path] = None) -> None:
    """Write YAML (or JSON for *.json) to a file, or YAML to stdout."""
    if output is not None and output.suffix.lower() == '.json':
        output.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding='utf-8')
        return
    text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    if output is None:
        print(text)
    else:
        output.write_text(text, encoding='utf-8')


def main():
    """Main entry point for mark-essay command."""
    parser = argparse.ArgumentParser(
        description='Mark an A-Level economics essay using OpenAI',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mark a 25-mark essay and print the result as YAML
  mark-essay --question "Evaluate the impact of a rise in interest rates" --marks 25 --essay essay.txt

  # Include the case-study extract and save JSON
  mark-essay -q "..." -k 10 --essay essay.txt --extract extract.txt --output result.json

  # Rewrite one weak sentence instead of marking
  mark-essay -q "..." --rewrite "Prices go up so demand falls." --essay essay.txt
        """
    )

    parser.add_argument('--question', '-q', type=str, required=True, help='Essay question')
    parser.add_argument('--marks', '-k', type=int, default=25, help='Total marks for the question (default: 25)')
    parser.add_argument('--essay', '-e', type=Path, default=None,
                        help='Path to the essay text file (required unless --rewrite is given)')
    parser.add_argument('--extract', '-x', type=Path, default=None, help='Path to the extract / case study text')
    parser.add_argument('--rewrite', '-r', type=str, default=None,
                        help='Rewrite this sentence instead of marking (the essay, if given, is used as context)')
    parser.add_argument('--role', type=str, default=None, help='Role of the sentence being rewritten')
    parser.add_argument('--output', '-o', type=Path, default=None,
                        help='Where to save the result (.json for JSON, anything else for YAML; default: stdout)')
    parser.add_argument('--model', '-m', type=str, default=None, help='OpenAI model to use (overrides config value)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.essay is None and args.rewrite is None:
        parser.error("--essay is required when not using --rewrite")

    essay = _read_text(args.essay) if args.essay else None
    extract = _read_text(args.extract) if args.extract else None

    try:
        config = load_default_configs()
        marker = create_essay_marker(config, model=args.model)
    except Exception as e:
        LOG.error(f"Failed to initialize essay marker: {e}")
        sys.exit(1)

    try:
        if args.rewrite is not None:
            rewrite = marker.rewrite_sentence(args.rewrite, args.question, context=essay,
                                              role=args.role, marks=args.marks)
            _dump(rewrite.model_dump(mode="json", by_alias=True), args.output)
            return

        result = marker.mark_essay(args.question, args.marks, essay, extract)
    except MarkingError as e:
        LOG.error(f"Marking failed: {e}")
        sys.exit(1)

    _dump(result.to_dict(), args.output)

    print(f"\n{'='*60}", file=sys.stderr)
    print(f"Mark: {result.overall_mark:g}/{result.total_marks} ({result.percentage:.1f}%)", file=sys.stderr)
    print(f"Level: {result.level}  Grade estimate: {result.grade_estimate}", file=sys.stderr)
    for warning in result.validation_warnings:
        print(f"  warning: {warning}", file=sys.stderr)
    if args.output:
        print(f"Result saved to: {args.output}", file=sys.stderr)


if __name__ == "__main__":
    main()
