# =============================================================================
# Premium Billing - Gunicorn Production Configuration
# =============================================================================
import os
import multiprocessing

# Bind
bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"

# Webhook handling is I/O bound (database, Discord); a few workers suffice
workers = min(multiprocessing.cpu_count() * 2 + 1, 4)
threads = 2

# Timeouts: Stripe gives up on a delivery after ~20s
timeout = 30
graceful_timeout = 30
keepalive = 5

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(L)s'

# Worker lifecycle
max_requests = 1000
max_requests_jitter = 50

# Security: limit request sizes
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190

# Server mechanics
worker_class = "gthread"
forwarded_allow_ips = "*"
