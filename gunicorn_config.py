import os
import multiprocessing

# Platform-provided port (Render/Fly/Heroku) or 8000 locally
bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"
wsgi_app = "wsgi:app"

workers = int(os.environ.get("WEB_CONCURRENCY", max(1, multiprocessing.cpu_count() // 2)))
worker_class = os.environ.get("GUNICORN_WORKER_CLASS", "gevent")
# Reset-link SMTP calls may retry; keep workers alive through them
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "60"))

# Logging
loglevel = os.environ.get("LOG_LEVEL", "info")
accesslog = '-'  # stdout
errorlog = '-'   # stderr
