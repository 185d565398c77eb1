from __future__ import annotations

# Top-level WSGI entry so `gunicorn wsgi:app` works when repository root is PYTHONPATH
from classroom_app.app import create_app


app = create_app()
