"""Gunicorn settings; every value can be overridden through the environment."""

import os

# Bind & workers
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
threads = int(os.getenv("GUNICORN_THREADS", "1"))
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr (collected by Docker)
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# Trust proxy headers (see USE_PROXYFIX)
forwarded_allow_ips = "*"
proxy_protocol = False

# The in-memory refresh store is per-process; use "sql" or "redis" with more than one worker
wsgi_app = "selfstudy:create_app()"
