"""Configuration introspection for debugging.

Usage:
    python -m schemaless.config
    python -m schemaless.config --check
    python -m schemaless.config --json
"""

import argparse
import json
import sys
from typing import Any

from schemaless.exceptions import ConfigurationError

from .api import resolve_config
from .types import ResolvedConfig

# ruff: noqa: T201


def _warnings(resolved: ResolvedConfig) -> list[str]:
    warnings = []
    if not resolved.api_key:
        warnings.append(
            "No API key configured - templates can only come from the cache, "
            "stored samples or reverse inference"
        )
    if resolved.poll_attempts * resolved.poll_interval_seconds > resolved.lock_ttl_seconds:
        warnings.append(
            "Polling outlasts the generation lock - waiters may generate duplicates"
        )
    if resolved.list_policy == "pad_first":
        warnings.append(
            "list_policy=pad_first repeats the first item when list fields differ in length"
        )
    return warnings


def get_config_info(profile: str | None = None) -> dict[str, Any]:
    """Structured view of the effective configuration."""
    try:
        resolved = resolve_config(profile=profile)
    except ConfigurationError as e:
        return {"status": "invalid", "error": str(e), "config": None, "sources": {}}

    config = resolved._asdict()
    config.pop("origin")
    config["api_key"] = "[SET]" if resolved.api_key else "[NOT SET]"
    return {
        "status": "valid",
        "config": config,
        "sources": dict(resolved.origin),
        "warnings": _warnings(resolved),
    }


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for configuration introspection."""
    parser = argparse.ArgumentParser(
        description="Inspect schemaless configuration",
        prog="python -m schemaless.config",
    )
    parser.add_argument("--profile", help="Configuration profile to use")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only check the configuration (exit code 0=valid, 1=invalid)",
    )
    args = parser.parse_args(argv)

    info = get_config_info(profile=args.profile)
    if args.check:
        return 0 if info["status"] == "valid" else 1

    if args.json:
        print(json.dumps(info, indent=2))
        return 0 if info["status"] == "valid" else 1

    if info["status"] != "valid":
        print(f"Configuration error: {info['error']}", file=sys.stderr)
        return 1

    print("=== Effective Configuration ===")
    for field, value in info["config"].items():
        print(f"  {field}: {value}  ({info['sources'].get(field, 'default')})")
    for warning in info["warnings"]:
        print(f"  warning: {warning}")
    return 0
