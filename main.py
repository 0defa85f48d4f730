"""
TopicLens - Topic Tree Analytics

CLI entry point for querying topic trees and analyzing them locally.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from src.agents.enhancement import EnhancementAdapter
from src.models.query import QueryRequest, QueryType
from src.orchestrator import QueryOrchestrator
from src.utils.query_client import QueryServiceError, TopicTreeClient
from src.utils.report import render_run
import config.settings as settings


def setup_logging(log_level: str = "INFO"):
    """Configure logging for the entire application."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=settings.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(settings.LOG_FILE)
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="TopicLens - Topic Tree Analytics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Overview of the latest version of the test dataset
  python main.py --dataset 2148778849

  # Compare three versions
  python main.py --dataset 2148778849 --versions 1 1757599557 1757670313

  # Ask a custom question about two users
  python main.py --dataset 2148778849 --query-type custom_query \\
                 --question "How do @alice and @bob differ in topic preferences?"

Note: Set GOOGLE_API_KEY to enable AI summaries for custom questions.
        """
    )

    parser.add_argument("--dataset", help="Dataset (channel) id")
    parser.add_argument(
        "--versions",
        nargs="+",
        type=int,
        help=f"Up to {settings.MAX_VERSIONS} versions to analyze (default: latest)"
    )
    parser.add_argument("--users", nargs="+", default=[], help="Only analyze these user ids")
    parser.add_argument(
        "--query-type",
        default=QueryType.CHANNEL_QUERY.value,
        choices=[t.value for t in QueryType],
        help="Analysis mode (default: channel_query)"
    )
    parser.add_argument("--question", default="", help="Question for custom_query")
    parser.add_argument("--list-datasets", action="store_true", help="Show known datasets and exit")
    parser.add_argument("--list-versions", action="store_true", help="Show dataset versions and exit")
    parser.add_argument("--list-users", action="store_true", help="Show dataset users and exit")
    parser.add_argument("--no-enhance", action="store_true", help="Skip the AI summary step")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {settings.LOG_LEVEL})"
    )
    return parser


def print_datasets():
    for dataset_id, dataset in settings.DATASETS.items():
        print(f"{dataset_id}  {dataset['name']}")
        print(f"    {dataset['description']}")
        print(f"    {dataset['github']}")


def build_enhancer(args) -> Optional[EnhancementAdapter]:
    if args.no_enhance or not settings.ENHANCEMENT_ENABLED:
        return None
    return EnhancementAdapter(
        api_key=settings.GOOGLE_API_KEY,
        model_name=settings.ENHANCEMENT_MODEL,
        temperature=settings.ENHANCEMENT_TEMPERATURE,
        max_output_tokens=settings.ENHANCEMENT_MAX_OUTPUT_TOKENS,
        max_chars=settings.ENHANCEMENT_MAX_CHARS,
        max_retries=settings.ENHANCEMENT_MAX_RETRIES,
        timeout_seconds=settings.ENHANCEMENT_TIMEOUT_SECONDS
    )


async def run(args) -> int:
    logger = logging.getLogger(__name__)
    channel_id = int(args.dataset)

    async with TopicTreeClient(
        settings.QUERY_SERVICE_BASE_URL,
        timeout_seconds=settings.QUERY_TIMEOUT_SECONDS
    ) as client:
        orchestrator = QueryOrchestrator(client, enhancer=build_enhancer(args))

        if args.list_versions:
            for entry in await orchestrator.list_versions(channel_id):
                print(
                    f"Version {entry['version']} ({entry.get('createdAt', 'unknown')})"
                    f" - {entry.get('messageCount', '?')} msgs, {entry.get('topicCount', '?')} topics"
                )
            return 0

        if args.list_users:
            for user in await orchestrator.list_users(channel_id):
                print(f"{user['userId']}  @{user['username']}")
            return 0

        versions = args.versions
        if not versions:
            available = await orchestrator.list_versions(channel_id)
            if not available:
                logger.error(f"No versions available for dataset {args.dataset}")
                return 1
            versions = [available[-1]["version"]]
            logger.info(f"Auto-selected latest version: {versions[0]}")

        request = QueryRequest(
            query_type=args.query_type,
            dataset_id=args.dataset,
            versions=tuple(versions),
            user_ids=frozenset(args.users),
            custom_question=args.question
        )

        query_run = await orchestrator.execute(request)

    if args.json:
        print(json.dumps(query_run.to_dict(), indent=2))
    else:
        print(render_run(query_run.ordered_results(), query_run.delta))
    return 0


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    if args.list_datasets:
        print_datasets()
        sys.exit(0)

    if not args.dataset:
        parser.error("--dataset is required")

    dataset = settings.DATASETS.get(args.dataset)
    if not args.json:
        print("=" * 60)
        print("TopicLens - Topic Tree Analytics")
        print("=" * 60)
        print(f"Dataset: {dataset['name'] if dataset else args.dataset}")
        print(f"Query: {args.query_type} - {QueryType(args.query_type).description}")
        if args.versions:
            print(f"Versions: {', '.join(str(v) for v in args.versions)}")
        if args.users:
            print(f"Users: {', '.join(args.users)}")
        print("=" * 60)
        print()

    try:
        sys.exit(asyncio.run(run(args)))

    except KeyboardInterrupt:
        logger.warning("Query interrupted by user")
        print("\nQuery interrupted")
        sys.exit(1)

    except (QueryServiceError, ValueError) as e:
        logger.error(f"Query failed: {e}")
        print(f"\nQuery failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()


# Design Rationale and Trade-offs:
#
# 1. Why asyncio.run around a single run() coroutine?
#    - The client is opened once and closed by its context manager
#    - Listing commands and analysis share the same client setup
#
# 2. Why auto-select the latest version?
#    - The most common question is about the current state of a dataset
#    - Trade-off: One extra call to the versions endpoint
#
# 3. Why exit codes (0 for success, 1 for failure)?
#    - Shell scripting and CI integration
