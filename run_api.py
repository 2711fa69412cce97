#!/usr/bin/env python3
"""
Script to run the Dusty Shelf API server.
"""

import sys

import uvicorn
from pydantic import ValidationError

from dusty_shelf.config import Settings


def main():
    """Run the API server."""
    try:
        settings = Settings()
    except ValidationError as e:
        print("❌ Invalid configuration, the Dusty Shelf cannot start:")
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]).upper()
            print(f"   {field}: {error['msg']}")
        sys.exit(1)

    print("🚀 Starting Dusty Shelf API Server")
    print(f"📡 Host: {settings.host_address}")
    print(f"🔌 Port: {settings.port_number}")
    print(f"🧭 Profile: {settings.dusty_profile}")
    print(f"👷 Workers: {settings.workers}")
    print("=" * 50)

    debug = settings.is_debug()
    uvicorn.run(
        "dusty_shelf.main:create_app",
        factory=True,
        host=settings.host_address,
        port=settings.port_number,
        reload=debug,
        workers=None if debug else settings.workers,
        log_level=settings.effective_log_level().lower(),
        access_log=debug,
        server_header=False,
        timeout_graceful_shutdown=settings.graceful_shutdown_timeout(),
    )


if __name__ == "__main__":
    main()
