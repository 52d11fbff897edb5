"""
Production Server Configuration

Run the LiveOps API with Uvicorn workers under Gunicorn:

    gunicorn liveops.main:app -c gunicorn.conf.py

The config cache and rate limiter are per worker process.
"""

import multiprocessing
import os

# Application
wsgi_app = "liveops.main:app"

# Server socket
bind = os.getenv("BIND", f"{os.getenv('API_HOST', '0.0.0.0')}:{os.getenv('API_PORT', '8000')}")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 20000
max_requests_jitter = 2000
timeout = 60
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "liveops-api"

# Each worker builds its own engine, cache and services in the app lifespan
preload_app = False
pidfile = os.getenv("GUNICORN_PIDFILE", "/tmp/liveops-api.pid")

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
accesslog = "-"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

