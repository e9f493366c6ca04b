from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from harmony_bridge.config import (
    BridgeConfig,
    apply_env_overrides,
    load_bridge_config,
    resolve_config_path,
)
from harmony_bridge.engine import HarmonyEncoder, HarmonyEngine
from harmony_bridge.errors import HarmonyError
from harmony_bridge.logging import get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser for harmony-bridge."""
    parser = argparse.ArgumentParser(
        prog="harmony-bridge",
        description="Tokenize text and render Harmony prompts through the Harmony engine.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a bridge config JSON (relative names resolve in HARMONY_BRIDGE_CONFIG_DIR).",
    )
    parser.add_argument(
        "--engine",
        choices=["native", "reference"],
        default=None,
        help="Engine to use (overrides config/environment).",
    )
    parser.add_argument(
        "--library",
        type=str,
        default=None,
        help="Path to libopenai_harmony (overrides config/environment).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log encoder activity.",
    )
    parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print results as JSON.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    encode = subparsers.add_parser("encode", help="Encode plain text.")
    encode.add_argument("text", help="Text to encode.")

    render = subparsers.add_parser("render", help="Render a structured Harmony prompt.")
    render.add_argument("--user", required=True, help="User message.")
    render.add_argument(
        "--system",
        default=None,
        help='System message (omit for none; --system "" renders an empty one).',
    )
    render.add_argument(
        "--assistant-prefix",
        default=None,
        help="Text the assistant turn starts with.",
    )

    decode = subparsers.add_parser("decode", help="Decode token IDs to text.")
    decode.add_argument("tokens", nargs="*", type=int, help="Token IDs.")

    subparsers.add_parser("stop-tokens", help="Print the assistant stop tokens.")
    return parser


def load_cli_config(args: argparse.Namespace) -> BridgeConfig:
    config: Optional[BridgeConfig] = None
    if args.config:
        path = resolve_config_path(args.config)
        config = load_bridge_config(path)
        if config is None:
            raise ValueError(f"Config file not found: {path}")
    config = apply_env_overrides(config or BridgeConfig())
    overrides: dict[str, Any] = {}
    if args.engine:
        overrides["engine"] = args.engine
    if args.library:
        overrides["library_path"] = args.library
    if args.verbose:
        overrides["verbose"] = True
        if logging.getLevelName(config.log_level.upper()) > logging.INFO:
            overrides["log_level"] = "INFO"
    if overrides:
        config = config.model_copy(update=overrides)
    return config


def run_command(encoder: HarmonyEncoder, args: argparse.Namespace) -> Any:
    if args.command == "encode":
        return encoder.encode_plain(args.text)
    if args.command == "render":
        return encoder.render_prompt(
            system_message=args.system,
            user_message=args.user,
            assistant_prefix=args.assistant_prefix,
        )
    if args.command == "decode":
        return encoder.decode(args.tokens)
    if args.command == "stop-tokens":
        return encoder.get_stop_tokens()
    raise ValueError(f"Unknown command {args.command!r}")


def _print_result(console: Console, result: Any, as_json: bool) -> None:
    payload = result.to_dict() if hasattr(result, "to_dict") else result
    if as_json:
        console.print_json(json.dumps(payload, ensure_ascii=False))
        return
    if isinstance(payload, dict):
        console.print(f"[bold]{payload['type']}[/bold] ({len(payload['tokens'])} tokens)")
        console.print(" ".join(str(token) for token in payload["tokens"]), markup=False)
    elif isinstance(payload, list):
        console.print(" ".join(str(token) for token in payload), markup=False)
    else:
        console.print(payload, markup=False, highlight=False)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console()
    err_console = Console(stderr=True)

    try:
        config = load_cli_config(args)
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 2

    try:
        engine = HarmonyEngine.from_config(config)
        with engine.create_encoder() as encoder:
            result = run_command(encoder, args)
    except HarmonyError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        err_console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
        return 1

    _print_result(console, result, args.as_json)
    return 0


if __name__ == "__main__":
    sys.exit(main())
