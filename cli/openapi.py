"""Export the OpenAPI document for the Aurum Vault Operations API.

Usage:
    uv run openapi [output_path]    # default: docs/openapi.json
"""

import json
import sys
from datetime import UTC, datetime
from pathlib import Path

DEFAULT_OUTPUT = "docs/openapi.json"


def export_openapi(output_path: str = DEFAULT_OUTPUT) -> dict:
    from app.main import create_app

    document = create_app().openapi()
    document["info"]["x-generated-at"] = datetime.now(UTC).isoformat()

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(document, indent=2))
    return document


def main() -> None:
    output = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_OUTPUT
    document = export_openapi(output)
    print(f"OpenAPI document written to: {output} ({len(document['paths'])} paths)")
