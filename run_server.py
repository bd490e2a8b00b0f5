"""
Development runner for the checklist backend.

Reads HOST/PORT from the environment through checklist.core.config.

Usage: python run_server.py
"""

from __future__ import annotations

from uvicorn import Config, Server

from checklist.core.config import get_settings


def main() -> None:
    settings = get_settings()
    config = Config(
        app="checklist.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.app_env == "development",
        reload_dirs=["checklist"],
    )

    server = Server(config=config)
    server.run()


if __name__ == "__main__":
    main()
