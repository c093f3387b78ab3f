"""
Entrypoint for the Interview Prep LLM Engine.
This file wires the FastAPI application together by importing the core package,
which initializes shared state and registers all routes.
"""

from __future__ import annotations

import argparse
import os
import platform
import sys

import core  # noqa: F401  # Ensure route modules are imported for side effects
from core.app_state import app, config, logger  # noqa: F401


def is_linux() -> bool:
    """Detect native Linux or WSL (gunicorn is only available there)."""
    if platform.system() != "Linux":
        return False
    if os.environ.get("WSL_DISTRO_NAME"):
        logger.info("Detected WSL via WSL_DISTRO_NAME env var")
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Interview Prep LLM Engine")
    parser.add_argument(
        "--force-extra-verbose",
        action="store_true",
        help="Log full prompts and raw model output for every request",
    )
    args = parser.parse_args()

    if args.force_extra_verbose:
        # Workers re-import config, so the override travels through the environment
        os.environ["EXTRA_VERBOSE"] = "true"
        config.EXTRA_VERBOSE = True

    if is_linux():
        import subprocess

        # Rate-limit counters live in Redis, so several workers share quotas correctly
        workers = int(os.environ.get("APP_WORKERS", "1"))
        cmd = [
            sys.executable,
            "-m",
            "gunicorn",
            "main:app",
            "--workers",
            str(workers),
            "--worker-class",
            "uvicorn.workers.UvicornWorker",
            "--bind",
            f"{config.APP_HOST}:{config.APP_PORT}",
        ]

        if config.APP_RELOAD:
            cmd.append("--reload")

        logger.info("Starting with gunicorn - %d workers", workers)
        logger.info("Command: %s", " ".join(cmd))
        subprocess.run(cmd, check=False)
    else:
        import uvicorn

        logger.info("Starting with uvicorn")
        uvicorn.run(
            "main:app",
            host=config.APP_HOST,
            port=config.APP_PORT,
            reload=config.APP_RELOAD,
        )
