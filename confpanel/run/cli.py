"""
CLI entrypoint for querying settings.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from ..config import EngineConfig, apply_cli_overrides, apply_env_overrides, load_config
from ..errors import SettingsError
from ..render.modes import RenderMode
from ..render.serializer import OutputFormat
from .runner import run_query

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ENGINE_ERROR = 1
EXIT_USAGE_ERROR = 2


def setup_logging(level: str = "WARNING"):
    """Setup logging configuration (stderr, so stdout only carries results)"""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _add_format_flags(parser: argparse.ArgumentParser, plain: bool) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--json", dest="fmt", action="store_const", const=OutputFormat.JSON, help="JSON output")
    group.add_argument("--yaml", dest="fmt", action="store_const", const=OutputFormat.YAML, help="YAML output")
    if plain:
        group.add_argument(
            "--plain", dest="fmt", action="store_const", const=OutputFormat.PLAIN, help="Plain text (single values only)"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="confpanel",
        description="Query global settings from the config panel",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single value
  confpanel settings get security.webadmin.webadmin_allowlist_enabled

  # A whole section, annotated, as JSON
  confpanel settings get --full --json security.webadmin

  # Flat backup of every value
  confpanel settings get --export --yaml security

  # Everything
  confpanel settings list --json
        """,
    )
    parser.add_argument("--config", type=str, help="Engine config file (YAML or JSON)")
    parser.add_argument("--schema", type=str, help="Override the schema definition path")
    parser.add_argument("--store", type=str, help="Override the settings store path")
    parser.add_argument("--locale", type=str, help="Locale for labels (default: from LC_ALL/LANG)")
    parser.add_argument(
        "--set",
        action="append",
        dest="sets",
        metavar="FIELD=VALUE",
        help="Override an engine config field (can be used multiple times)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    settings = commands.add_parser("settings", help="Read global settings")
    actions = settings.add_subparsers(dest="action", required=True)

    get = actions.add_parser("get", help="Get a panel, section or option")
    modes = get.add_mutually_exclusive_group()
    modes.add_argument("-f", "--full", dest="mode", action="store_const", const=RenderMode.FULL, help="Annotated output")
    modes.add_argument("-e", "--export", dest="mode", action="store_const", const=RenderMode.EXPORT, help="Flat key/value output")
    _add_format_flags(get, plain=True)
    get.add_argument("key", help="Dotted key, e.g. security.webadmin")
    get.set_defaults(mode=RenderMode.CLASSIC)

    list_ = actions.add_parser("list", help="List every setting")
    list_.add_argument("-f", "--full", dest="mode", action="store_const", const=RenderMode.FULL, help="Annotated output")
    _add_format_flags(list_, plain=False)
    list_.set_defaults(mode=RenderMode.CLASSIC)

    return parser


def resolve_config(args: argparse.Namespace) -> EngineConfig:
    """Config file, then environment, then explicit flags"""
    config = load_config(args.config) if args.config else EngineConfig()
    config = apply_env_overrides(config)
    sets: List[str] = list(args.sets or [])
    if args.schema:
        sets.append(f"schema_path={json.dumps(args.schema)}")
    if args.store:
        sets.append(f"store_path={json.dumps(args.store)}")
    if args.locale:
        sets.append(f"locale={json.dumps(args.locale)}")
    if args.log_level:
        sets.append(f"log_level={args.log_level}")
    return apply_cli_overrides(config, sets)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint"""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_USAGE_ERROR

    setup_logging(config.log_level)

    try:
        result = run_query(
            config,
            key=getattr(args, "key", ""),
            mode=args.mode,
            fmt=args.fmt,
            list_all=(args.action == "list"),
        )
    except SettingsError as e:
        logger.debug(f"Query failed: {e}")
        print(json.dumps(e.to_dict(), ensure_ascii=False), file=sys.stderr)
        return EXIT_ENGINE_ERROR

    sys.stdout.write(result.output.decode("utf-8"))
    sys.stdout.flush()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
