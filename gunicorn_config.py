"""
Gunicorn Configuration for Production Deployment
Patrol Scheduler

Usage:
    gunicorn --config gunicorn_config.py wsgi:app

The in-process materialization job (AUTO_MATERIALIZE_ENABLED) starts once per
worker. Runs are idempotent, so several workers are safe, but a single
worker or the scripts/materialize_bookings.py timer avoids redundant passes.
"""
import multiprocessing
import os

# Server Socket
bind = os.getenv('GUNICORN_BIND', '0.0.0.0:8000')
backlog = int(os.getenv('GUNICORN_BACKLOG', '2048'))

# Worker Processes
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() + 1))
worker_class = os.getenv('GUNICORN_WORKER_CLASS', 'sync')
max_requests = int(os.getenv('GUNICORN_MAX_REQUESTS', '10000'))
max_requests_jitter = int(os.getenv('GUNICORN_MAX_REQUESTS_JITTER', '1000'))
timeout = int(os.getenv('GUNICORN_TIMEOUT', '120'))
graceful_timeout = int(os.getenv('GUNICORN_GRACEFUL_TIMEOUT', '30'))
keepalive = int(os.getenv('GUNICORN_KEEPALIVE', '5'))

# Server Mechanics
daemon = False  # supervised by systemd
pidfile = os.getenv('GUNICORN_PIDFILE', None)

# Logging
accesslog = os.getenv('GUNICORN_ACCESS_LOG', '-')
errorlog = os.getenv('GUNICORN_ERROR_LOG', '-')
loglevel = os.getenv('GUNICORN_LOG_LEVEL', 'info')
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(a)s" %(D)s'

proc_name = 'patrol_scheduler'


def on_starting(server):
    server.log.info("Starting Patrol Scheduler")


def when_ready(server):
    server.log.info("Patrol Scheduler is ready. Listening on: %s", bind)


def worker_int(worker):
    worker.log.info("Worker received SIGINT or SIGQUIT")


# Security
limit_request_line = int(os.getenv('GUNICORN_LIMIT_REQUEST_LINE', '4096'))
limit_request_fields = int(os.getenv('GUNICORN_LIMIT_REQUEST_FIELDS', '100'))

raw_env = [
    f"FLASK_ENV={os.getenv('FLASK_ENV', 'production')}",
]
