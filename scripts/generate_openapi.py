"""Generate and persist the OpenAPI schema for the linked-context service."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from fastapi.openapi.utils import get_openapi

from app.main import create_app


def build_schema() -> dict:
    app = create_app()
    return get_openapi(
        title=app.title,
        version=app.version,
        routes=app.routes,
        description=app.description,
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Generate OpenAPI schema")
    parser.add_argument(
        "--output",
        default="openapi.json",
        help="Path to write the OpenAPI schema, or '-' for stdout (default: openapi.json)",
    )
    args = parser.parse_args(argv)

    payload = json.dumps(build_schema(), indent=2)
    if args.output == "-":
        sys.stdout.write(payload + "\n")
        return
    output_path = Path(args.output)
    output_path.write_text(payload, encoding="utf-8")
    print(f"OpenAPI schema written to {output_path}")


if __name__ == "__main__":
    main()
