"""CLI entrypoint for the scholarly research assistant."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from config import load_settings
from errors import ConfigurationError, ResearchAssistantError
from models import Paper
from provider import build_provider
from research_service import ResearchAssistant


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Search, compare and map scholarly papers with an LLM")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Find papers for a topic")
    search.add_argument("query")
    search.add_argument(
        "--systematic",
        action="store_true",
        help="Systematic review mode: favour a diverse mix of foundational and recent papers",
    )
    search.add_argument("--topics", action="store_true", help="Also suggest broader topics")

    compare = commands.add_parser("compare", help="Compare papers from a JSON file (search output)")
    compare.add_argument("papers", type=Path)
    compare.add_argument("--query", default="", help="Original query, used to focus the reports")
    compare.add_argument(
        "--all",
        action="store_true",
        help="Also build the knowledge graph, detailed report, key insights and research gaps",
    )

    graph = commands.add_parser("graph", help="Build knowledge-graph data for papers in a JSON file")
    graph.add_argument("papers", type=Path)

    topics = commands.add_parser("topics", help="Suggest broader research topics")
    topics.add_argument("query")
    topics.add_argument("papers", type=Path)

    return parser.parse_args(argv)


def load_papers(path: Path) -> list[Paper]:
    """Load papers from a JSON list, or an object with a "papers" list."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ResearchAssistantError(f"Could not read papers from {path}: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("papers")
    if not isinstance(data, list):
        raise ResearchAssistantError(f"Expected a list of papers in {path}")
    return [Paper.from_dict(item) for item in data if isinstance(item, dict)]


async def run(args: argparse.Namespace, assistant: ResearchAssistant) -> Any:
    """Execute one command and return a JSON-serializable result."""
    if args.command == "search":
        papers = await assistant.search(args.query, systematic=args.systematic)
        result: dict[str, Any] = {"papers": [p.to_dict() for p in papers]}
        if args.topics:
            result["suggestedTopics"] = await assistant.suggest_broader_topics(args.query, papers)
        return result

    if args.command == "compare":
        papers = load_papers(args.papers)
        if args.all:
            report = await assistant.analyze(papers, query=args.query)
            return report.to_dict()
        comparison = await assistant.compare(papers)
        return comparison.to_dict()

    if args.command == "graph":
        graph = await assistant.build_knowledge_graph(load_papers(args.papers))
        return graph.to_dict()

    if args.command == "topics":
        return await assistant.suggest_broader_topics(args.query, load_papers(args.papers))

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute one command."""
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        logging.error("Configuration error: %s", exc)
        return 2

    assistant = ResearchAssistant(
        build_provider(settings),
        model=settings.model,
        fast_model=settings.fast_model,
        max_retries=settings.max_retries,
        initial_delay=settings.initial_delay,
    )

    try:
        result = asyncio.run(run(args, assistant))
    except ResearchAssistantError as exc:
        logging.error("%s failed: %s", args.command, exc)
        print(str(exc), file=sys.stderr)
        return 1
    except Exception as exc:
        logging.exception("%s failed unexpectedly: %s", args.command, exc)
        print(str(exc), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
