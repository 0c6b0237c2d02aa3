"""Entry point: python -m routergen

Fetches the OpenAPI document and writes the router package. Flags
override the environment defaults described in routergen.config.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .compiler import run
from .config import Config
from .errors import RouterGenError


def parse_args(argv: list[str] | None = None) -> Config:
    parser = argparse.ArgumentParser(
        prog="routergen",
        description="Generate typed procedure routers from an OpenAPI document.",
    )
    try:
        config = Config.from_env()
    except ValueError as exc:
        parser.error(str(exc))
    parser.add_argument("--output", type=Path, default=config.output_dir,
                        help=f"output package directory (default: {config.output_dir})")
    parser.add_argument("--name", default=config.api_name,
                        help=f"REST client class name (default: {config.api_name})")
    parser.add_argument("--url", default=config.source_url,
                        help="OpenAPI/Swagger document URL (default: $SWAGGER_URL)")
    parser.add_argument("--timeout", type=float, default=config.timeout,
                        help=f"fetch timeout in seconds (default: {config.timeout:g})")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return Config(
        output_dir=args.output,
        source_url=args.url,
        api_name=args.name,
        timeout=args.timeout,
    )


def main(argv: list[str] | None = None) -> int:
    config = parse_args(argv)
    try:
        run(config)
    except RouterGenError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        if exc.__cause__ is not None:
            print(f"Caused by: {exc.__cause__!r}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
