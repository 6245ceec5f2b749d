# backend/wsgi.py
"""
WSGI entrypoint for the blood purchase API.
Falls back to dev settings when DJANGO_SETTINGS_MODULE is not provided by the host.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

application = get_wsgi_application()
