"""
WSGI config for unidocs_backend project.

It exposes the WSGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os
from pathlib import Path

from django.core.wsgi import get_wsgi_application
from dotenv import load_dotenv

# Path(__file__) is backend/unidocs_backend/wsgi.py, parent.parent is backend/
backend_dir = Path(__file__).resolve().parent.parent

if (backend_dir / ".env").exists():
    load_dotenv(backend_dir / ".env")
else:
    load_dotenv(backend_dir.parent / ".env")

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "unidocs_backend.settings")

application = get_wsgi_application()
