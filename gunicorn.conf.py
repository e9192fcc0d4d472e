"""
Gunicorn configuration for the EcoHunt reward engine.

Env vars that override defaults:
  PORT              TCP port to bind (Railway sets this automatically)
  WORKERS           number of worker processes (default: 2)
  GUNICORN_TIMEOUT  worker timeout; defaults to one SUBMISSION_TIMEOUT_SECONDS
                    plus one ISSUANCE_TIMEOUT_SECONDS
                    per batch wave (BATCH_MAX_ITEMS / BATCH_CONCURRENCY)

Every worker builds its own ActivityOrchestrator, so the counters served by
GET /metrics/orchestrator are per worker.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

_submission_timeout = float(os.environ.get("SUBMISSION_TIMEOUT_SECONDS", "30"))
_issuance_timeout = float(os.environ.get("ISSUANCE_TIMEOUT_SECONDS", "20"))
_batch_waves = -(-int(os.environ.get("BATCH_MAX_ITEMS", "100")) // int(os.environ.get("BATCH_CONCURRENCY", "10")))

# A full batch runs in waves of BATCH_CONCURRENCY, each bounded by one
# submission timeout plus one issuance timeout.
timeout = int(os.environ.get("GUNICORN_TIMEOUT", str(int((_submission_timeout + _issuance_timeout) * _batch_waves) + 10)))

# In-flight submissions get one full timeout to finish on restart.
graceful_timeout = int(_submission_timeout + _issuance_timeout) + 5

loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'
