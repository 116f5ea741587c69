"""CLI entry point for genbridge.

Runs one generation against the configured backend from a terminal or a
script. Backend settings come from GENBRIDGE_* environment variables (.env
is loaded); flags override the provider and model.

Entry point:
    genbridge generate "prompt" [--system TEXT] [--stream]
    genbridge models [--json]
    genbridge ping
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from genbridge.adapters.errors import AdapterError
from genbridge.config import get_provider, load_adapter_config
from genbridge.manager import AdapterManager

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _add_backend_flags(parser: argparse.ArgumentParser, suppress: bool = False) -> None:
    """Backend flags, accepted before or after the subcommand."""
    # Subcommand copies stay unset unless given on the command line
    unset = argparse.SUPPRESS if suppress else None
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Enable debug logging",
    )
    parser.add_argument(
        "--provider", default=unset,
        help="openai, deepseek or gemini (default: GENBRIDGE_PROVIDER)",
    )
    parser.add_argument("--model", default=unset, help="Override GENBRIDGE_MODEL")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="genbridge",
        description="Generate text through any configured backend.",
    )
    _add_backend_flags(parser)

    common = argparse.ArgumentParser(add_help=False)
    _add_backend_flags(common, suppress=True)
    sub = parser.add_subparsers(dest="command")

    # generate
    gen_p = sub.add_parser("generate", parents=[common], help="Generate a completion")
    gen_p.add_argument("prompt", help="User message")
    gen_p.add_argument("--system", default=None, help="System message")
    gen_p.add_argument(
        "--stream", action="store_true", help="Print text as it arrives"
    )

    # models
    models_p = sub.add_parser(
        "models", parents=[common], help="List models (OpenAI-compatible backends)"
    )
    models_p.add_argument(
        "--json", action="store_true", dest="json_output", help="JSON output"
    )

    # ping
    sub.add_parser("ping", parents=[common], help="Check that the backend answers")

    return parser


def _build_manager(provider: Optional[str], model: Optional[str]) -> AdapterManager:
    provider = provider or get_provider()
    config = load_adapter_config(provider)
    if model:
        config = config.model_copy(update={"model": model})
    manager = AdapterManager()
    manager.configure(provider, config)
    return manager


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


async def _cmd_generate(
    manager: AdapterManager,
    prompt: str,
    system: Optional[str] = None,
    stream: bool = False,
) -> int:
    """Generate and print a completion. Returns exit code."""
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    try:
        if stream:
            def on_chunk(delta: str, _accumulated: str) -> None:
                sys.stdout.write(delta)
                sys.stdout.flush()

            await manager.stream_generate(messages, on_chunk)
            sys.stdout.write("\n")
        else:
            text = await manager.generate(messages)
            print(text)
    except AdapterError as e:
        print(f"Error: {e}", file=sys.stderr)
        if manager.is_token_limit_error(e):
            print("Hint: the prompt exceeds the model's context window", file=sys.stderr)
        return 1

    return 0


async def _cmd_models(manager: AdapterManager, json_output: bool = False) -> int:
    """List available models. Returns exit code."""
    adapter = manager.get_adapter()
    list_models = getattr(adapter, "list_models", None)
    if list_models is None:
        print(
            f"Error: provider '{manager.get_provider()}' has no model listing",
            file=sys.stderr,
        )
        return 1

    models = await list_models()
    if json_output:
        json.dump({"provider": manager.get_provider(), "models": models}, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        for model_id in models:
            print(model_id)
    return 0


async def _cmd_ping(manager: AdapterManager) -> int:
    """Send a minimal prompt. Returns exit code."""
    try:
        await manager.generate([{"role": "user", "content": "Hi"}])
    except AdapterError as e:
        print(f"{manager.get_provider()}: FAILED ({e})", file=sys.stderr)
        return 1
    print(f"{manager.get_provider()}: OK")
    return 0


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def main(argv: Optional[list[str]] = None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    load_dotenv()

    try:
        manager = _build_manager(args.provider, args.model)
    except AdapterError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Dispatch
    if args.command == "generate":
        code = asyncio.run(_cmd_generate(
            manager,
            prompt=args.prompt,
            system=args.system,
            stream=args.stream,
        ))
    elif args.command == "models":
        code = asyncio.run(_cmd_models(manager, json_output=args.json_output))
    elif args.command == "ping":
        code = asyncio.run(_cmd_ping(manager))
    else:
        parser.print_help()
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
