"""
Production Server Configuration

Uvicorn worker under Gunicorn. One worker: each process would otherwise
run its own refresh scheduler and hold its own query cache.
"""

import os

# Server socket
bind = os.getenv("BIND", f"0.0.0.0:{os.getenv('PORT', '5000')}")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = 300
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "texas-sales-api"

# Server mechanics
daemon = False
pidfile = "/tmp/gunicorn.pid"

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = "-"
