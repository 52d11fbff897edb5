#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py
    Gunicorn:     python run_server.py --gunicorn

Host and port default to API_HOST / API_PORT from the settings.
"""

import argparse
import os
import subprocess

from liveops.config import get_settings

APP = "liveops.main:app"


def run_dev_server(host: str, port: int):
    """Run development server with auto-reload."""
    import uvicorn

    uvicorn.run(
        APP,
        host=host,
        port=port,
        reload=True,
        reload_dirs=["liveops"],
        log_level="debug",
        access_log=True,
    )


def run_prod_server(host: str, port: int):
    """Run production server with Uvicorn directly."""
    import uvicorn

    uvicorn.run(
        APP,
        host=host,
        port=port,
        workers=int(os.getenv("WORKERS", 4)),
        log_level=get_settings().monitoring.log_level.lower(),
        access_log=True,
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
        date_header=True,
    )


def run_gunicorn(host: str, port: int):
    """Run with Gunicorn (recommended for production)."""
    subprocess.run(
        ["gunicorn", APP, "-c", "gunicorn.conf.py", "--bind", f"{host}:{port}"],
        check=True,
    )


if __name__ == "__main__":
    settings = get_settings()

    parser = argparse.ArgumentParser(description="LiveOps API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn (production)")
    parser.add_argument("--host", default=settings.api_host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to run on")

    args = parser.parse_args()

    if args.dev:
        run_dev_server(args.host, args.port)
    elif args.gunicorn:
        run_gunicorn(args.host, args.port)
    else:
        run_prod_server(args.host, args.port)
