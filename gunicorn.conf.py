"""
Gunicorn configuration for Loyalty Hub.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Sync workers: each request is one short unit of work against the database
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
timeout = 60
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'loyaltyhub'

# Preloading starts the scheduler once, in the master process
preload_app = True

graceful_timeout = 30


def on_starting(server):
    server.log.info('Starting Loyalty Hub server...')


def on_exit(server):
    server.log.info('Loyalty Hub server shutting down...')
