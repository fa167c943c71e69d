"""
wsgi.py — ASGI entry point for production servers (uvicorn, gunicorn + UvicornWorker)

Usage:
  uvicorn wsgi:application --host 0.0.0.0 --port 8000
  gunicorn -k uvicorn.workers.UvicornWorker wsgi:application

Run more than one worker only with REDIS_URL set: edit sessions, the
generation busy flag and the login limiter otherwise live in one process.
"""

import os

from app import app as application  # noqa: F401  (servers look for 'application')

if __name__ == '__main__':
    import uvicorn

    uvicorn.run(
        application,
        host=os.getenv('HOST', '127.0.0.1'),
        port=int(os.getenv('PORT', '8000')),
    )
