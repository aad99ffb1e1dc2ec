#!/usr/bin/env python
"""
Production Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py

    Or with Gunicorn:
    gunicorn txsales.main:app -c gunicorn.conf.py

The query cache and refresh scheduler live inside the process, so the
server runs a single worker.
"""

import argparse
import os
import subprocess


def run_dev_server():
    """Run development server with auto-reload."""
    import uvicorn

    uvicorn.run(
        "txsales.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 5000)),
        reload=True,
        reload_dirs=["txsales"],
        log_level="debug",
    )


def run_prod_server():
    """Run production server with Uvicorn directly."""
    import uvicorn

    uvicorn.run(
        "txsales.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 5000)),
        workers=1,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn():
    """Run with Gunicorn."""
    subprocess.run(["gunicorn", "txsales.main:app", "-c", "gunicorn.conf.py"], check=True)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Texas Mixed Beverage Sales API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn")
    parser.add_argument("--port", type=int, default=None, help="Port to run on (default: 5000)")

    args = parser.parse_args()

    if args.port:
        os.environ["PORT"] = str(args.port)

    if args.dev:
        print("🚀 Starting development server...")
        run_dev_server()
    elif args.gunicorn:
        print("🚀 Starting production server with Gunicorn...")
        run_gunicorn()
    else:
        print("🚀 Starting production server with Uvicorn...")
        run_prod_server()
