"""Launch the workflow engine API with uvicorn.

Host, port and log level come from the application settings (``HOST``,
``PORT``, ``LOG_LEVEL``). Auto-reload follows ``DEBUG`` unless disabled.

Usage:
    python run.py              # reload when DEBUG is set
    python run.py --no-reload  # production-like
"""

import sys

import uvicorn

from app.core.config import settings

if __name__ == "__main__":
    reload = settings.DEBUG and "--no-reload" not in sys.argv
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=str(settings.LOG_LEVEL).lower(),
        reload=reload,
    )
