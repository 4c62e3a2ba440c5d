#!/usr/bin/env python
"""
Server Entry Point

Starts the reconciliation API with Uvicorn.
Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py --port 8080
"""

import argparse

import uvicorn

from reconciler.config import get_settings


def run_dev_server(port: int) -> None:
    """Run development server with auto-reload."""
    uvicorn.run(
        "reconciler.main:app",
        host="127.0.0.1",
        port=port,
        reload=True,
        reload_dirs=["reconciler"],
        log_level="debug",
        access_log=True,
    )


def run_prod_server(host: str, port: int, workers: int) -> None:
    """Run production server with Uvicorn workers."""
    uvicorn.run(
        "reconciler.main:app",
        host=host,
        port=port,
        workers=workers,
        log_level=get_settings().monitoring.log_level.lower(),
        access_log=True,
        proxy_headers=True,
        server_header=False,
    )


if __name__ == "__main__":
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Catalog Reconciliation API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Port to run on")
    parser.add_argument("--workers", type=int, default=1, help="Uvicorn worker processes")
    args = parser.parse_args()

    if args.dev:
        run_dev_server(args.port)
    else:
        run_prod_server(settings.api_host, args.port, args.workers)
