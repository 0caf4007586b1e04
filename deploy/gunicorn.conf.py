"""Gunicorn configuration for the ALS progress sync service.

Usage:
    gunicorn main:app -c deploy/gunicorn.conf.py

Each worker keeps its own entity store and loads the shared collections on
startup, so the worker count also multiplies the initial upstream fetches.
"""

import multiprocessing
import os

# ─── Server socket ──────────────────────────────────────────────

bind = os.getenv("BIND", "0.0.0.0:5000")
backlog = 1024

# ─── Worker processes ───────────────────────────────────────────
#
# One async worker per core, capped at 4.  Requests are short CRUD calls
# against the progress API.

workers = int(os.getenv("WORKERS", min(multiprocessing.cpu_count(), 4)))
worker_class = "uvicorn.workers.UvicornWorker"

# ─── Timeouts ───────────────────────────────────────────────────
#
# Upstream calls time out after API_TIMEOUT (15s); a GET may retry three
# times with backoff, so allow roughly a minute.

timeout = 60
graceful_timeout = 30
keepalive = 5

# ─── Worker recycling ──────────────────────────────────────────

max_requests = 5000
max_requests_jitter = 500

# ─── Logging ────────────────────────────────────────────────────

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
access_log_format = (
    '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" %(D)sμs'
)

# ─── Process naming ─────────────────────────────────────────────

proc_name = "als-progress-sync"

# ─── Server hooks ───────────────────────────────────────────────


def on_starting(server):
    server.log.info(
        "Starting ALS progress sync — workers=%d, timeout=%ds, bind=%s",
        workers,
        timeout,
        bind,
    )


def post_fork(server, worker):
    server.log.info("Worker spawned (pid: %s)", worker.pid)


def worker_exit(server, worker):
    server.log.info("Worker exit (pid: %s)", worker.pid)
