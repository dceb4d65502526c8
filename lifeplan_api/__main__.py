"""
Entry point for running the LifePlan API server.

Usage:
    python -m lifeplan_api

This starts the FastAPI server on http://0.0.0.0:8000
"""
import os

import uvicorn

from lifeplan.config import get_config, load_env_files
from logging_setup import setup_logging

if __name__ == "__main__":
    load_env_files()
    setup_logging(level=get_config().log_level, use_json=True)

    uvicorn.run(
        "lifeplan_api.server:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
    )
