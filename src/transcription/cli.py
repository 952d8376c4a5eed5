"""Command line entry point.

    transcription transcribe VAULT NOTE [--settings FILE] [--debug]
    transcription settings [--settings FILE] [--set KEY=VALUE ...]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from typing import Any

from transcription import __version__
from transcription.config import (
    EngineConfig,
    load_settings,
    read_settings,
    save_settings,
    update_settings,
)
from transcription.errors import ConfigurationError
from transcription.host import FileSystemVault
from transcription.logger import configure_logging
from transcription.orchestrator import Orchestrator

DEFAULT_SETTINGS_FILE = "transcription.json"


def parse_assignment(raw: str) -> tuple[str, Any]:
    """Parse ``KEY=VALUE``; VALUE is read as JSON when possible, else kept as a string."""
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise ConfigurationError(f"Expected KEY=VALUE, got {raw!r}")
    try:
        return key, json.loads(value)
    except json.JSONDecodeError:
        return key, value


async def transcribe_note(vault: FileSystemVault, note: str, config: EngineConfig) -> int:
    orchestrator = Orchestrator(vault, document_lock=asyncio.Lock())
    try:
        run = await orchestrator.run(note, config)
        outcomes = await run.wait()
    finally:
        orchestrator.shutdown()

    if not run.references:
        print(f"No audio files to transcribe in {note}")
        return 0
    failed = [o for o in outcomes if not o.ok]
    print(f"Transcribed {len(outcomes) - len(failed)}/{len(outcomes)} file(s) in {note}")
    return 1 if failed else 0


def cmd_transcribe(args: argparse.Namespace) -> int:
    config = load_settings(args.settings)
    if args.debug:
        config = replace(config, debug=True)
    configure_logging(config.debug, args.log_file)
    vault = FileSystemVault(args.vault)
    return asyncio.run(transcribe_note(vault, args.note, config))


def cmd_settings(args: argparse.Namespace) -> int:
    # Stored values only; environment overrides must not leak into the file.
    config = read_settings(args.settings)
    if args.set:
        changes = dict(parse_assignment(item) for item in args.set)
        config = update_settings(config, **changes)
        save_settings(config, args.settings)
    print(json.dumps(config.to_settings(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transcription",
        description="Transcribe audio files linked from markdown notes",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--settings",
        default=DEFAULT_SETTINGS_FILE,
        help=f"Settings JSON file (default: {DEFAULT_SETTINGS_FILE})",
    )

    transcribe = sub.add_parser(
        "transcribe", parents=[common], help="Transcribe all audio files linked from a note"
    )
    transcribe.add_argument("vault", help="Vault root directory")
    transcribe.add_argument("note", help="Note path relative to the vault root")
    transcribe.add_argument("--debug", action="store_true", help="Show error details and debug logs")
    transcribe.add_argument("--log-file", default=None, help="Also write logs to this file")
    transcribe.set_defaults(func=cmd_transcribe)

    settings = sub.add_parser("settings", parents=[common], help="Show or update settings")
    settings.add_argument(
        "--set",
        action="append",
        metavar="KEY=VALUE",
        help='Update a setting, e.g. --set whisperASRUrl=http://asr:9000 --set timestamps=true',
    )
    settings.set_defaults(func=cmd_settings)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
