from __future__ import annotations

import argparse
import asyncio
import sys

from petichat.core.errors import ProviderConfigError, ProviderError, ValidationError
from petichat.providers.ai.base import RewriteContext
from petichat.providers.ai.registry import ProviderRegistry


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a single rewrite against the configured AI provider.")
    parser.add_argument("--provider", default=None, help="Provider name (default: AI_PROVIDER)")
    parser.add_argument(
        "--instruction",
        default="improve",
        choices=["improve", "simplify", "expand", "formalize", "custom"],
        help="Rewrite instruction",
    )
    parser.add_argument("--custom-instruction", default=None, help="Instruction text when --instruction=custom")
    parser.add_argument(
        "--text",
        default="O réu deixou de pagar as parcelas vencidas desde janeiro.",
        help="Text to rewrite",
    )
    return parser


def _format_error(exc: Exception) -> tuple[int, str]:
    # Map known provider failures to stable, actionable messages.
    if isinstance(exc, ProviderConfigError):
        return 2, f"PROVIDER_CONFIG_ERROR: {exc.message}"
    if isinstance(exc, ValidationError):
        return 2, f"VALIDATION_ERROR: {exc.message}"
    if isinstance(exc, ProviderError):
        return 4, f"PROVIDER_ERROR: {exc.message}"
    return 1, f"UNKNOWN_ERROR: {exc}"


async def _run(args: argparse.Namespace) -> int:
    provider = ProviderRegistry().get(args.provider)
    result = await provider.rewrite_text(
        args.text, args.instruction, custom_instruction=args.custom_instruction, context=RewriteContext()
    )
    print(f"provider={provider.name} model={provider.model}")
    print(result)
    return 0


def main() -> int:
    args = _build_parser().parse_args()
    try:
        return asyncio.run(_run(args))
    except Exception as exc:  # noqa: BLE001 - smoke script reports every failure as an exit code
        code, message = _format_error(exc)
        print(message, file=sys.stderr)
        return code


if __name__ == "__main__":
    sys.exit(main())
