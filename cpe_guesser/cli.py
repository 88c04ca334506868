"""
Command line entry point
cpe_guesser/cli.py

    cpe-guesser server [--port P] [--database-url URL] [--config PATH]
    cpe-guesser import [--download] [--replace | --update] [--database-url URL] [--config PATH]
    cpe-guesser search KEYWORD... [--unique]
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from cpe_guesser import __version__
from cpe_guesser.core.config import Settings, load_settings
from cpe_guesser.core.context import create_context
from cpe_guesser.core.exceptions import CPEGuesserError
from cpe_guesser.utils.logger import setup_logging

logger = logging.getLogger(__name__)


def _settings_from_args(args: argparse.Namespace) -> Settings:
    return load_settings(
        args.config,
        DATABASE_URL=args.database_url,
        SERVER_PORT=getattr(args, "port", None),
        SERVER_HOST=getattr(args, "host", None),
        LOG_LEVEL=args.log_level,
    )


def cmd_server(args: argparse.Namespace) -> None:
    import uvicorn
    from cpe_guesser.main import create_app

    settings = _settings_from_args(args)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    context = create_context(settings)
    try:
        app = create_app(context)
        logger.info(f"Starting server on {settings.SERVER_HOST}:{settings.SERVER_PORT}")
        uvicorn.run(
            app,
            host=settings.SERVER_HOST,
            port=settings.SERVER_PORT,
            log_level=settings.LOG_LEVEL.lower(),
            access_log=settings.DEBUG,
        )
    finally:
        context.close()


def cmd_import(args: argparse.Namespace) -> None:
    from cpe_guesser.services.importer import run_import

    settings = _settings_from_args(args)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    context = create_context(settings)
    try:
        stats = run_import(
            context,
            download=args.download,
            replace=args.replace,
            update=args.update,
            break_lock=args.break_lock,
        )
    finally:
        context.close()

    print(json.dumps(stats.to_dict()))


def cmd_search(args: argparse.Namespace) -> None:
    from cpe_guesser.services.search_engine import CPESearchEngine

    settings = _settings_from_args(args)
    # stdout carries the JSON result
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE, stream=sys.stderr)

    context = create_context(settings)
    try:
        engine = CPESearchEngine(context.store)
        if args.unique:
            entry = engine.unique(args.keywords)
            output = entry if entry is not None else []
        else:
            output = [[result.score, result.entry] for result in engine.search(args.keywords)]
    finally:
        context.close()

    print(json.dumps(output))


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None,
                        help="Path to YAML config file (default: settings.yaml in the current directory)")
    parser.add_argument("--database-url", dest="database_url", default=None,
                        help="Store database URL (overrides config)")
    parser.add_argument("--log-level", dest="log_level", default=None,
                        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cpe-guesser", description="Guess CPE entries from keywords.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    server = subparsers.add_parser("server", help="Start the HTTP API.")
    _add_common_arguments(server)
    server.add_argument("--port", type=int, default=None, help="Port to listen on (overrides config)")
    server.add_argument("--host", default=None, help="Interface to bind (overrides config)")
    server.set_defaults(func=cmd_server)

    import_cmd = subparsers.add_parser("import", help="Build the keyword index from the CPE dictionary.")
    _add_common_arguments(import_cmd)
    import_cmd.add_argument("--download", action="store_true",
                            help="Download CPE data even if the file exists")
    import_cmd.add_argument("--replace", action="store_true",
                            help="Flush and repopulate the index")
    import_cmd.add_argument("--update", action="store_true",
                            help="Update the index without flushing")
    import_cmd.add_argument("--break-lock", dest="break_lock", action="store_true",
                            help="Remove a stale import lock left by a crashed run")
    import_cmd.set_defaults(func=cmd_import)

    search = subparsers.add_parser("search", help="Query the index from the command line.")
    _add_common_arguments(search)
    search.add_argument("keywords", nargs="+", help="Keywords, e.g. apache tomcat")
    search.add_argument("--unique", action="store_true", help="Print only the best entry")
    search.set_defaults(func=cmd_search)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except CPEGuesserError as exc:
        logger.error(f"{args.command} failed: {exc}")
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
