"""Command line entry point.

Generates one or more quiz questions and prints each one as a JSON line on
stdout. Progress messages go to stderr so the output can be piped.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import yaml

from .config import settings
from .generation.generator import MAX_OPTIONS_COUNT, MIN_OPTIONS_COUNT, QuestionGenerator
from .infrastructure.error_classifier import ErrorCategory, GenerationError
from .logging_config import setup_logging
from .models import DifficultyLevel, GenerationParameters, StatusUpdate
from .providers.base import get_retry_metrics

EXIT_SUCCESS = 0
EXIT_GENERATION_ERROR = 2
EXIT_CONFIG_ERROR = 3


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="quizgen",
        description="Generate quiz questions with a generative text service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One random medium question
  quizgen

  # Three hard history questions in Bulgarian
  quizgen --category History --difficulty hard --language Bulgarian --count 3

  # Multiple choice with six options
  quizgen --multiple-choice --options 6
        """,
    )

    parser.add_argument(
        "--difficulty",
        choices=[dl.value for dl in DifficultyLevel],
        default=DifficultyLevel.MEDIUM.value,
        help="Difficulty level (default: medium)",
    )

    parser.add_argument(
        "--language",
        default="English",
        help="Language of the question and answer (default: English)",
    )

    parser.add_argument(
        "--category",
        default="random",
        help="Topic to focus on (default: random)",
    )

    parser.add_argument(
        "--multiple-choice",
        action="store_true",
        help="Also generate wrong answers and shuffle the options",
    )

    parser.add_argument(
        "--options",
        type=int,
        default=4,
        help=(
            "Total number of options for multiple choice "
            f"({MIN_OPTIONS_COUNT}-{MAX_OPTIONS_COUNT}, default: 4)"
        ),
    )

    parser.add_argument(
        "--count",
        type=int,
        default=1,
        help="Number of questions to generate in this session (default: 1)",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args(argv)

    if args.count < 1:
        parser.error("--count must be at least 1")
    if not MIN_OPTIONS_COUNT <= args.options <= MAX_OPTIONS_COUNT:
        parser.error(
            f"--options must be between {MIN_OPTIONS_COUNT} and {MAX_OPTIONS_COUNT}"
        )

    return args


def print_status(update: StatusUpdate) -> None:
    """Render a progress message on stderr."""
    print(update.message, file=sys.stderr, flush=True)


def build_generator() -> QuestionGenerator:
    """Create the generator from settings."""
    return QuestionGenerator()


async def run(args: argparse.Namespace, generator: QuestionGenerator) -> int:
    """Generate ``args.count`` questions, printing each as JSON.

    Returns:
        Exit code
    """
    logger = logging.getLogger(__name__)
    params = GenerationParameters(
        difficulty=DifficultyLevel(args.difficulty),
        language=args.language,
        category=args.category,
    )

    try:
        for index in range(args.count):
            question = await generator.generate_question(
                params,
                on_status_update=print_status,
                multiple_choice=args.multiple_choice,
                options_count=args.options,
            )
            print(json.dumps(question.model_dump(mode="json"), ensure_ascii=False))
            logger.debug(f"Question {index + 1}/{args.count} done")
    except GenerationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        logger.error(
            f"Generation failed: {e.category.value}",
            extra={"status_code": e.classified_error.status_code},
        )
        if e.category == ErrorCategory.MISCONFIGURED:
            return EXIT_CONFIG_ERROR
        return EXIT_GENERATION_ERROR
    finally:
        await generator.provider.aclose()
        logger.debug(f"Retry metrics: {get_retry_metrics().get_summary()}")

    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the quizgen command.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    args = parse_arguments(argv)

    log_level = "DEBUG" if args.verbose else settings.log_level
    setup_logging(log_level=log_level, log_file=settings.log_file)
    logger = logging.getLogger(__name__)

    try:
        generator = build_generator()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        logger.error(f"Failed to build generator: {e}")
        return EXIT_CONFIG_ERROR

    return asyncio.run(run(args, generator))


if __name__ == "__main__":
    sys.exit(main())
