"""Command-line export check for a callable or value named by ``module:attr``."""

from __future__ import annotations

import argparse
import importlib
import sys
from typing import Any, List, Optional, Sequence, TextIO

from .bootstrap import setup
from .capture import captured_from_function
from .config import ExportGuardSettings, get_settings
from .models import CapturedVariable, Policy

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check whether a deferred expression's globals can leave this process.")
    parser.add_argument("target", help="Callable or value to check, as 'module:attr'.")
    parser.add_argument(
        "--policy",
        choices=[policy.value for policy in Policy],
        default=None,
        help="Reference-on-detection policy (overrides config/env; 'ignore' in config falls back to warn).",
    )
    parser.add_argument(
        "--plugin",
        action="append",
        default=[],
        help="Registry plugin entrypoint 'module:attr' (repeatable).",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Log level (overrides config/env).",
    )
    return parser.parse_args(argv)


def resolve_target(target: str) -> Any:
    if ":" not in target:
        raise ValueError(f"Invalid target '{target}', expected format 'module:attr'")
    module_name, attr = target.split(":", 1)
    value: Any = importlib.import_module(module_name)
    for part in attr.split("."):
        value = getattr(value, part)
    return value


def captured_for(target: str, value: Any) -> List[CapturedVariable]:
    if callable(value) and not isinstance(value, type):
        return captured_from_function(value)
    return [CapturedVariable(name=target.split(":", 1)[1], value=value)]


def main(argv: Optional[Sequence[str]] = None, *, out: Optional[TextIO] = None) -> int:
    out = out or sys.stdout
    args = parse_args(argv)
    base = get_settings()
    if args.policy:
        policy = Policy.parse(args.policy)
    else:
        # An explicit check run never silently ignores.
        policy = base.on_reference if base.on_reference is not Policy.IGNORE else Policy.WARN
    overrides: dict[str, Any] = {
        "on_reference": policy,
        "registry_plugins": [*base.registry_plugins, *args.plugin],
    }
    if args.log_level:
        overrides["log_level"] = args.log_level
    settings: ExportGuardSettings = base.model_copy(update=overrides)
    runtime = setup(settings)

    try:
        value = resolve_target(args.target)
    except (ImportError, AttributeError, ValueError) as exc:
        print(f"Unable to resolve {args.target}: {exc}", file=out)
        return EXIT_USAGE

    captured = captured_for(args.target, value)
    result = runtime.validate(captured)
    for finding in result.findings:
        print(f"{finding.location()}: {finding.message()}", file=out)
    if not result.ok:
        return EXIT_FATAL
    if result.truncated:
        print(f"Export check stopped after {result.nodes_visited} node(s); some captured state was not inspected.", file=out)
    if not result.checked:
        print("Export check skipped (policy: ignore).", file=out)
    elif not result.findings:
        print(f"{len(captured)} captured variable(s), {result.nodes_visited} node(s) checked: no opaque references.", file=out)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
