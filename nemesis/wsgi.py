"""
WSGI config for the nemesis project.

The environment is checked before the application is built so a missing
DATABASE_URL or TOKEN_SECRET stops the worker at boot.
"""
import os

from dotenv import load_dotenv
from django.core.wsgi import get_wsgi_application

from .env import validate_env

load_dotenv()
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "nemesis.settings")
validate_env()

application = get_wsgi_application()
