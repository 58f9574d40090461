import argparse
import os
from functools import lru_cache
from pathlib import Path

DEFAULT_CONFIG_FILE = "chatrelay.yaml"


@lru_cache
def get_cli_args() -> argparse.Namespace:
    return build_parser().parse_args()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatrelay",
        description=(
            "Start a chat relay server.\n\n"
            "Clients connect over TCP, pick a unique display name and exchange\n"
            "broadcast or point-to-point messages through a line-oriented\n"
            "text protocol."
        ),
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        help=(
            "Path to a YAML configuration file.\n"
            f"Defaults to $CHATRELAYCONFIG, then ./{DEFAULT_CONFIG_FILE} if present."
        )
    )

    parser.add_argument(
        "-p", "--port",
        type=int,
        help="TCP port to listen on, overrides the configuration file."
    )

    parser.add_argument(
        "-l", "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=(
            "Logging verbosity for the server.\n"
            "Choose among: DEBUG, INFO, WARNING, ERROR, CRITICAL.\n\n"
            "DEBUG    → every relayed message, useful for tracing.\n"
            "INFO     → joins, leaves, name conflicts (default).\n"
            "WARNING  → dropped deliveries and unknown recipients.\n"
            "ERROR    → only errors.\n"
            "CRITICAL → only fatal failures.\n\n"
            "Example:\n"
            "  --log-level DEBUG"
        ),
    )

    return parser


def find_configfile(raw: str | None, cwd: Path | None = None) -> Path | None:
    """
    Resolve the configuration file to load.

    Priority: explicit path (CLI) > CHATRELAYCONFIG > default file in the
    working directory. An explicit path that does not exist is fatal; a
    missing default file means the built-in defaults apply.
    """
    raw = raw or os.getenv("CHATRELAYCONFIG")

    if raw is None:
        file = (cwd or Path.cwd()) / DEFAULT_CONFIG_FILE
        return file if file.is_file() else None

    file = Path(raw)
    if not file.is_file():
        raise SystemExit(
            f"[config] Configuration file not found: '{file}'.\n"
            "  - Use --config <file.yaml>\n"
            "  - Or set the CHATRELAYCONFIG environment variable\n"
            f"  - Or place a '{DEFAULT_CONFIG_FILE}' file in the current working directory."
        )

    return file


@lru_cache
def get_configfile() -> Path | None:
    return find_configfile(get_cli_args().config)
