"""Entry point: python -m kubepilot"""

import sys

import uvicorn

from kubepilot.config import settings, validate_settings

if __name__ == "__main__":
    missing = validate_settings()
    if missing:
        print("ERROR: Missing or invalid config (set via env vars or .env):", file=sys.stderr)
        for name in missing:
            print(f"  - {name}", file=sys.stderr)
        sys.exit(1)

    uvicorn.run(
        "kubepilot.app:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info",
    )
