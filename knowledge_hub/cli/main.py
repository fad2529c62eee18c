"""Command-line interface for the knowledge hub."""

import argparse
import asyncio
import json
import sys
from typing import Any, get_args

from pydantic import BaseModel

from knowledge_hub.core.factory import build_service
from knowledge_hub.core.knowledge_service import KnowledgeService
from knowledge_hub.lib.config import ConfigLoader
from knowledge_hub.lib.logger import get_logger, setup_logging
from knowledge_hub.models.errors import KnowledgeError
from knowledge_hub.models.knowledge import DocumentType

logger = get_logger(__name__)


def _dump(value: Any) -> str:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    elif isinstance(value, list):
        value = [v.model_dump(mode="json") if isinstance(v, BaseModel) else v for v in value]
    return json.dumps(value, indent=2, ensure_ascii=False)


async def run_command(args: argparse.Namespace, service: KnowledgeService) -> Any:
    """Execute one subcommand against an opened service."""
    if args.command == "create":
        content = args.content if args.content is not None else sys.stdin.read()
        return await service.create_document(args.title, content, args.type, args.tags)
    if args.command == "show":
        return await service.get_document(args.document_id)
    if args.command == "search":
        results = await service.search_documents(args.query)
        return [
            {"id": r.document.id, "title": r.document.title, "score": r.score}
            for r in results[: args.limit]
        ]
    if args.command == "mentions":
        if args.simple:
            suggestions = await service.get_simple_mention_suggestions(args.query.lstrip("@"))
        else:
            suggestions = await service.get_mention_suggestions(args.query)
        return [{"label": s.label, "path": s.path, "type": s.type} for s in suggestions]
    if args.command == "history":
        versions = await service.get_version_history(args.document_id)
        return [
            {"id": v.id, "version": v.version, "created": v.created.isoformat(), "author": v.author}
            for v in versions
        ]
    if args.command == "restore":
        return await service.restore_version(args.document_id, args.version_id)
    if args.command == "stats":
        stats = await service.get_stats()
        return {"documents": stats.model_dump(mode="json"), "index": service.index_stats()}
    raise ValueError(f"Unknown command: {args.command}")


async def main(args: argparse.Namespace) -> int:
    config = ConfigLoader(config_dir=args.config_dir)
    service = build_service(config)

    async with service:
        try:
            result = await run_command(args, service)
        except KnowledgeError as e:
            logger.error(str(e))
            print(f"Error: {e}", file=sys.stderr)
            return 1

    print(_dump(result))
    return 0


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    from knowledge_hub.api.app import create_app

    config = ConfigLoader(config_dir=args.config_dir)
    uvicorn.run(
        create_app(config),
        host=args.host or config.get("server.host", "127.0.0.1"),
        port=args.port or config.get("server.port", 9100),
        log_level=config.get_env("log_level", "INFO").lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="knowledge-hub",
        description="Knowledge documents with @mentions, search and version history",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  knowledge-hub create "Budget Manual" --content "See @agent/budget-analyst" --tags finance
  knowledge-hub search finance
  knowledge-hub mentions "@agent/"
  knowledge-hub mentions budget --simple
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable verbose logging")
    parser.add_argument("--config-dir", help="Directory containing knowledge.yaml")

    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a document")
    create.add_argument("title")
    create.add_argument("--content", help="Document content (default: read stdin)")
    create.add_argument("--type", default="markdown", choices=get_args(DocumentType))
    create.add_argument("--tags", nargs="*", default=[])

    show = sub.add_parser("show", help="Show a document")
    show.add_argument("document_id")

    search = sub.add_parser("search", help="Full-text search")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=10)

    mentions = sub.add_parser("mentions", help="Mention suggestions")
    mentions.add_argument("query")
    mentions.add_argument(
        "--simple", action="store_true", help="Use the flat ranker instead of prefix dispatch"
    )

    history = sub.add_parser("history", help="Version history of a document")
    history.add_argument("document_id")

    restore = sub.add_parser("restore", help="Restore a version as a new version")
    restore.add_argument("document_id")
    restore.add_argument("version_id")

    sub.add_parser("stats", help="Document and index statistics")

    server = sub.add_parser("serve", help="Run the HTTP API")
    server.add_argument("--host")
    server.add_argument("--port", type=int)

    return parser


def cli() -> None:
    args = build_parser().parse_args()
    setup_logging(log_level="DEBUG" if args.debug else "INFO", quiet=not args.debug)

    if args.command == "serve":
        sys.exit(serve(args))
    sys.exit(asyncio.run(main(args)))


if __name__ == "__main__":
    cli()
