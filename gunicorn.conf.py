"""
Gunicorn configuration for container deployment.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Sync workers; the points and punch updates are short guarded UPDATEs
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
timeout = 60
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'giya'

# Scheduler guard (SCHEDULER_RUNNING) keeps one APScheduler per preloaded master
preload_app = True

graceful_timeout = 30


def on_starting(server):
    print("[Gunicorn] Starting Giya server...")


def on_exit(server):
    print("[Gunicorn] Giya server shutting down...")
