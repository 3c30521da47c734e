"""
Gunicorn Configuration

Runs the discount analytics API with Uvicorn workers.

    gunicorn discount_analytics.main:app -c gunicorn.conf.py
"""

import os

from discount_analytics.config import get_settings

settings = get_settings()

# Server socket
bind = os.getenv("BIND", f"{settings.api_host}:{settings.api_port}")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", settings.api_workers))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 10000
max_requests_jitter = 1000
timeout = 120
keepalive = 5
graceful_timeout = 30

proc_name = "discount-analytics-api"

# Logging
errorlog = "-"
loglevel = settings.monitoring.log_level.lower()
accesslog = "-"


def post_fork(server, worker):
    """Each worker configures its own structured logging."""
    from discount_analytics.config.logging import configure_logging
    configure_logging()
