"""Run the Mealpilot proxy under uvicorn."""

from __future__ import annotations

import os

import uvicorn

APP_PATH = "mealpilot.server.app:app"


def main() -> None:
    """Start the proxy; host, port and reload come from ``MEALPILOT_SERVER_*``."""

    host = os.environ.get("MEALPILOT_SERVER_HOST", "127.0.0.1")
    port = int(os.environ.get("MEALPILOT_SERVER_PORT") or os.environ.get("PORT") or "8080")
    reload_enabled = os.environ.get("MEALPILOT_SERVER_RELOAD") == "1"

    uvicorn.run(APP_PATH, host=host, port=port, reload=reload_enabled)


if __name__ == "__main__":
    main()
