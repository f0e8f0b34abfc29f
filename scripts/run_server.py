#!/usr/bin/env python3
"""
Start the Formation Vault API server.
"""

import argparse

import uvicorn

from formation_vault.core.config import validate_config
from formation_vault.util.logging import logger


def main():
    parser = argparse.ArgumentParser(description="Run the Formation Vault API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")

    args = parser.parse_args()

    for issue in validate_config():
        logger.warning(f"Configuration issue: {issue}")

    print(f"Starting Formation Vault API on http://{args.host}:{args.port}")
    print(f"Docs available at: http://{args.host}:{args.port}/docs")

    # A single worker keeps one writer per store
    uvicorn.run(
        "formation_vault.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=1
    )


if __name__ == "__main__":
    main()
