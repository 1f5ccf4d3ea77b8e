"""
WSGI config for the pickflow project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "pickflow.settings")

application = get_wsgi_application()
