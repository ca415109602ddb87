"""
Draft Helper - command-line entry point.

Subcommands:
    ask      Run one structured conversation for a prompt file.
    models   List available model ids.
    serve    Run the HTTP API with uvicorn.

Configuration comes from ``DRAFTHELPER_*`` environment variables (see
``drafthelper.config.Settings``).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from drafthelper.config import Settings, get_settings
from drafthelper.conversation.engine import DraftEngine
from drafthelper.conversation.models import ModelCatalog
from drafthelper.conversation.trace import LoggingTraceEmitter
from drafthelper.conversation.transport import HttpxTransport
from drafthelper.errors import LLMError

logger = logging.getLogger(__name__)


def _read_prompt(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _read_task(path: str | None, pool_count: int | None) -> dict:
    task: dict = {}
    if path:
        task = json.loads(Path(path).read_text(encoding="utf-8"))
    if pool_count is not None:
        task["player_pool_count"] = pool_count
    return task


async def run_ask(settings: Settings, args: argparse.Namespace) -> int:
    engine = DraftEngine(settings.to_engine_config(), trace=LoggingTraceEmitter())
    try:
        result = await engine.ask_structured(
            _read_prompt(args.prompt_file),
            web=args.web,
            task=_read_task(args.task_file, args.pool_count),
        )
    except LLMError as exc:
        logger.error("Ask failed: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(result.json_text)
    for url in result.citations:
        print(f"source: {url}", file=sys.stderr)
    return 0


async def run_models(settings: Settings) -> int:
    async with HttpxTransport() as transport:
        catalog = ModelCatalog(transport, url=settings.models_endpoint)
        for model in await catalog.list_models():
            print(model)
    return 0


async def run_serve(settings: Settings) -> None:
    from drafthelper.conversation.server import create_app
    import uvicorn

    app = create_app(DraftEngine(settings.to_engine_config(), trace=LoggingTraceEmitter()))
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    await uvicorn.Server(config).serve()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drafthelper",
        description="Structured draft lineup recommendations from a tool-calling model",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    ask = sub.add_parser("ask", help="Run one conversation")
    ask.add_argument("--prompt-file", required=True, help="Prompt text file ('-' for stdin)")
    ask.add_argument("--task-file", help="JSON file with the captured draft payload")
    ask.add_argument("--pool-count", type=int, help="Override the player pool size")
    ask.add_argument("--web", action="store_true", help="Enable web-search augmentation")

    sub.add_parser("models", help="List available model ids")
    sub.add_parser("serve", help="Run the HTTP API")
    return parser


def cli(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "ask":
        return asyncio.run(run_ask(settings, args))
    if args.command == "models":
        return asyncio.run(run_models(settings))
    try:
        asyncio.run(run_serve(settings))
    except KeyboardInterrupt:
        logger.info("Server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(cli())
