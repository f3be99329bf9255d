# prism/cli.py
# Created: 2026-10-16
# Purpose: Command line entry point (prism-merge)

"""
Prism question merger CLI.

Examples:
    prism-merge frameworks
    prism-merge generate -n 5 -f "GRI Standards" -f SASB
    prism-merge generate -n 3 -f TCFD -f "GRI Standards" --json
    prism-merge refine "How do you report emissions and water use?"
    prism-merge test-llm
"""

import argparse
import json
import sys
from typing import List, Optional

from prism.config import APP_CONFIG, with_overrides
from prism.errors import DataLoadError, InsufficientFrameworks, NoQuestionsGenerated
from prism.framework_data import FrameworkRepository
from prism.llm_layer import ServiceError
from prism.log_config import setup_logging
from prism.merge_agent.question_pipeline import MergePipeline, generate_questions


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prism-merge",
        description="Merge overlapping sustainability framework questions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument(
        "--data",
        type=str,
        default=None,
        help="Framework JSON document (defaults to PRISM_FRAMEWORKS_PATH or the bundled sample)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("frameworks", help="List available frameworks")

    generate = subparsers.add_parser("generate", help="Generate merged questions")
    generate.add_argument(
        "-n", "--count",
        type=int,
        default=5,
        help="Number of merged questions to generate"
    )
    generate.add_argument(
        "-f", "--framework",
        dest="frameworks",
        action="append",
        default=[],
        help="Framework name (repeat for each framework, at least two)"
    )
    generate.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON"
    )
    generate.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds allowed per merge (overrides PRISM_MERGE_TIMEOUT)"
    )
    generate.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Merges in flight at once (overrides PRISM_MERGE_CONCURRENCY)"
    )
    generate.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for emoji choice"
    )
    generate.add_argument(
        "--template-fallback",
        action="store_true",
        default=None,
        help="Use the template question when a merge times out"
    )

    refine = subparsers.add_parser("refine", help="Rewrite a merged question")
    refine.add_argument("text", type=str, help="Question text to refine")

    subparsers.add_parser("test-llm", help="Check the text-generation service")

    return parser


def main(argv: Optional[List[str]] = None, pipeline: Optional[MergePipeline] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(debug=True if args.debug else None)

    owns_pipeline = pipeline is None
    if owns_pipeline:
        repository = FrameworkRepository(args.data) if args.data else None
        config = APP_CONFIG.merge
        if args.command == "generate":
            config = with_overrides(
                config,
                merge_timeout=args.timeout,
                merge_concurrency=args.concurrency,
                random_seed=args.seed,
                use_deterministic_fallback=args.template_fallback,
            )
        pipeline = MergePipeline(repository=repository, config=config)

    if args.command == "frameworks":
        try:
            frameworks = pipeline.repository.load_frameworks()
        except DataLoadError as e:
            print(f"❌ Error: {e}", file=sys.stderr)
            return 1
        for framework in frameworks:
            print(f"{framework.name} ({framework.question_count} questions)")
        return 0

    if args.command == "generate":
        try:
            questions = generate_questions(args.count, args.frameworks, pipeline)
        except (ValueError, InsufficientFrameworks) as e:
            print(f"❌ Error: {e}", file=sys.stderr)
            return 2
        except NoQuestionsGenerated as e:
            print(f"❌ {e}", file=sys.stderr)
            return 3
        except DataLoadError as e:
            print(f"❌ Error: {e}", file=sys.stderr)
            return 1
        finally:
            if owns_pipeline:
                pipeline.close()

        if args.json:
            print(json.dumps([q.to_dict() for q in questions], indent=2, ensure_ascii=False))
        else:
            for question in questions:
                print(f"{question.id}: {question.text}")
                print(f"    [{' + '.join(question.framework_ids)}]")
        return 0

    if args.command == "refine":
        try:
            print(pipeline.service.refine_question(args.text))
        except (ValueError, ServiceError) as e:
            print(f"❌ Error: {e}", file=sys.stderr)
            return 1
        return 0

    if args.command == "test-llm":
        result = pipeline.service.check_connection()
        if result["ok"]:
            print(f"✅ Connection OK: {result['content']}")
            return 0
        print(f"❌ Connection failed: {result['error']}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
