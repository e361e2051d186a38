"""Entrypoint for the download renamer native host and its command line."""
import argparse
import asyncio
import sys
from typing import Optional, Sequence

from config.rename_settings import SettingsValidationError
from config.settings import Settings, load_settings
from core.logging_utils import configure_logging, get_logger
from host.app import build_application, read_lines, stream_writer
from host.formatting import format_history, format_settings
from host.options import preview_filename, reset_settings, save_settings
from storage.db import get_engine, get_session_factory, init_db
from storage.repositories import RenameDecisionRepository
from storage.stores import SqlSettingsStore


def _parse_assignments(pairs: Sequence[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise SettingsValidationError(f"Expected key=value, got {pair!r}")
        values[key.strip()] = value
    return values


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="download-renamer",
        description="Rename browser downloads from page context and a filename template.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the native host on stdin/stdout")

    preview = subparsers.add_parser("preview", help="Render the sample download")
    preview.add_argument("--pattern", help="Filename pattern to try instead of the saved one")
    preview.add_argument("--max-title-length", type=int, help="Title length limit, 0 for none")
    preview.add_argument("--keep-www", action="store_true", help="Do not strip a leading www.")

    settings_parser = subparsers.add_parser("settings", help="Show or change rename settings")
    settings_sub = settings_parser.add_subparsers(dest="action", required=True)
    settings_sub.add_parser("show")
    set_parser = settings_sub.add_parser("set")
    set_parser.add_argument("assignments", nargs="+", metavar="key=value")
    settings_sub.add_parser("reset")

    history = subparsers.add_parser("history", help="List recent rename decisions")
    history.add_argument("--limit", type=int, default=20)
    return parser


async def _serve(settings: Settings, session_factory) -> None:
    application = build_application(
        settings, session_factory=session_factory, write=stream_writer(sys.stdout)
    )
    await application.run(read_lines(sys.stdin))


async def _run_command(args: argparse.Namespace, settings: Settings, session_factory) -> int:
    store = SqlSettingsStore(session_factory)

    if args.command == "serve":
        await _serve(settings, session_factory)
        return 0

    if args.command == "preview":
        overrides: dict[str, object] = {}
        if args.pattern is not None:
            overrides["filename_pattern"] = args.pattern
        if args.max_title_length is not None:
            overrides["max_title_length"] = args.max_title_length
        if args.keep_www:
            overrides["remove_www"] = False
        current = await store.read()
        print(preview_filename(current.merged(overrides)))
        return 0

    if args.command == "settings":
        if args.action == "show":
            current = await store.read()
        elif args.action == "set":
            current = await save_settings(store, _parse_assignments(args.assignments))
        else:
            current = await reset_settings(store)
        print(format_settings(current))
        print(f"preview:          {preview_filename(current)}")
        return 0

    session = session_factory()
    try:
        decisions = RenameDecisionRepository(session).list_recent(limit=args.limit)
        print(format_history(decisions))
    finally:
        session.close()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = load_settings()
    configure_logging(settings)
    logger = get_logger(__name__)
    logger.info(
        "Settings loaded environment=%s debug_mode=%s db_path=%s "
        "filename_retry_attempts=%s filename_retry_delay_seconds=%s referrer_tab_fallback=%s",
        settings.environment,
        settings.debug_mode,
        settings.db_path,
        settings.filename_retry_attempts,
        settings.filename_retry_delay_seconds,
        settings.referrer_tab_fallback,
    )

    engine = get_engine(settings)
    init_db(engine)
    session_factory = get_session_factory(engine)

    try:
        return asyncio.run(_run_command(args, settings, session_factory))
    except SettingsValidationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 130


if __name__ == "__main__":
    sys.exit(main())
