#!/usr/bin/env python3
"""Generate OpenAPI specification from the development receiver's routes.

Run whenever the receiver's routes or response models change so the
documented chunk upload contract stays in sync with the client.

Usage:
    python scripts/generate_openapi.py
"""

import json
import sys
from pathlib import Path

try:
    from chunkpipe.server.main import create_app

    app = create_app()
    schema = app.openapi()

    docs_dir = Path(__file__).parent.parent / "docs" / "api"
    docs_dir.mkdir(parents=True, exist_ok=True)

    openapi_file = docs_dir / "openapi.json"
    with open(openapi_file, "w") as f:
        json.dump(schema, f, indent=2)

    print(f"✅ Generated OpenAPI spec: {openapi_file}")
    print(f"📊 Found {len(schema.get('paths', {}))} endpoints")

    for path, methods in schema.get("paths", {}).items():
        for method in methods.keys():
            if method != "parameters":
                print(f"   {method.upper()} {path}")

except ImportError as e:
    print(f"❌ Import error: {e}")
    print("💡 Install the package first: pip install -e .")
    sys.exit(1)
except Exception as e:
    print(f"❌ Error generating OpenAPI: {e}")
    sys.exit(1)
