# backend/asgi.py
"""
PATH: backend/asgi.py

ASGI entrypoint for the blood purchase API.
Falls back to dev settings when DJANGO_SETTINGS_MODULE is not provided by the host.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

application = get_asgi_application()
