"""Command-line entry for supercal_lite.

Subcommands:
  expand   template event JSON -> JSON list of series instances
  export   snapshot JSON -> iCalendar file
  import   iCalendar file -> snapshot JSON
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, NoReturn

import yaml
from pydantic import ValidationError

from . import _init_logging
from .config_loader import LOG_LEVEL_ENV, Config, load_config
from .lite_exceptions import SuperCalError
from .lite_ics_encoder import LiteICSEncoder
from .lite_ics_parser import LiteICSParser
from .lite_logging import configure_lite_logging
from .lite_models import CalendarEvent
from .lite_recurrence_expander import RecurrenceExpander
from .lite_snapshot import dump_snapshot, load_snapshot

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for supercal_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="supercal_lite",
        description="SuperCal Lite - recurrence expansion and iCalendar import/export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m supercal_lite expand template.json             # Print the series as JSON
  python -m supercal_lite export backup.json -o cal.ics    # Snapshot to iCalendar
  python -m supercal_lite import cal.ics -o backup.json    # iCalendar to snapshot
        """,
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to config YAML (default: $SUPERCAL_CONFIG or ./supercal_lite/config.yaml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    expand_parser = subparsers.add_parser("expand", help="Expand a recurring template event")
    expand_parser.add_argument("template", metavar="TEMPLATE_JSON", help="Template event JSON file")
    expand_parser.add_argument("-o", "--output", metavar="OUT", help="Write to file instead of stdout")

    export_parser = subparsers.add_parser("export", help="Export a snapshot to iCalendar")
    export_parser.add_argument("snapshot", metavar="SNAPSHOT_JSON", help="Snapshot JSON file")
    export_parser.add_argument("-o", "--output", metavar="OUT", help="Write to file instead of stdout")
    export_parser.add_argument(
        "--event-id",
        dest="event_ids",
        action="append",
        metavar="ID",
        help="Only export this event (repeatable)",
    )

    import_parser = subparsers.add_parser("import", help="Import iCalendar into a snapshot")
    import_parser.add_argument("ics", metavar="ICS_FILE", help="iCalendar file")
    import_parser.add_argument("-o", "--output", metavar="OUT", help="Write to file instead of stdout")

    return parser


def _write_output(text: str, output: str | None) -> None:
    if output:
        # newline="" keeps iCalendar CRLF line endings untouched
        Path(output).write_text(text, encoding="utf-8", newline="")
        logger.info("Wrote %s", output)
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")


def _cmd_expand(args: argparse.Namespace, cfg: Config) -> int:
    template = CalendarEvent.model_validate_json(Path(args.template).read_text(encoding="utf-8"))
    instances = RecurrenceExpander(cfg).expand(template)
    payload = [instance.model_dump(mode="json") for instance in instances]
    _write_output(json.dumps(payload, indent=2, ensure_ascii=False), args.output)
    return EXIT_OK


def _cmd_export(args: argparse.Namespace, cfg: Config) -> int:
    snapshot = load_snapshot(
        Path(args.snapshot).read_text(encoding="utf-8"),
        min_compatible_version=cfg.min_compatible_version,
    )
    text = LiteICSEncoder(cfg).encode(
        snapshot.events, snapshot.categories, event_ids=args.event_ids
    )
    _write_output(text, args.output)
    return EXIT_OK


def _cmd_import(args: argparse.Namespace, cfg: Config) -> int:
    result = LiteICSParser(cfg).parse(Path(args.ics).read_bytes())
    if result.skipped_count:
        print(f"Skipped {result.skipped_count} incomplete event(s)", file=sys.stderr)
    text = dump_snapshot(result.events, result.categories, version=cfg.snapshot_version)
    _write_output(text, args.output)
    return EXIT_OK


_COMMANDS: dict[str, Callable[[argparse.Namespace, Config], int]] = {
    "expand": _cmd_expand,
    "export": _cmd_export,
    "import": _cmd_import,
}


def main(argv: Any = None) -> NoReturn:
    """Run the supercal_lite CLI.

    Exits with 0 on success, 1 when input cannot be read or decoded, and 2
    (from argparse) on usage errors.
    """
    parser = _create_parser()
    args = parser.parse_args(argv)

    _init_logging(os.environ.get(LOG_LEVEL_ENV))

    try:
        cfg = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: cannot load config: {exc}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    logging.getLogger().setLevel(getattr(logging, cfg.log_level, logging.INFO))
    if args.debug:
        configure_lite_logging(force_debug=True)

    try:
        code = _COMMANDS[args.command](args, cfg)
    except (SuperCalError, ValidationError, OSError, ValueError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    sys.exit(code)


if __name__ == "__main__":
    main()
