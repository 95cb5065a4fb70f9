# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Uvicorn entry point.

Usage:
    python -m src.main
    uvicorn src.main:app --port 5000
"""

import uvicorn

from src.api.app import create_app
from src.core.config import get_settings

app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.api.host,
        port=settings.api.port,
        workers=settings.api.workers,
        reload=settings.api.reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
