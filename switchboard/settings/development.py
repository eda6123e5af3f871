"""
Development settings for Switchboard project.

These settings are used for local development and testing using docker.
"""

from .base import *
import os


# App configuration
DEBUG = True
ALLOWED_HOSTS = ["*"]

# Security settings
SECURE_SSL_REDIRECT = False
X_FRAME_OPTIONS = os.environ.get("X_FRAME_OPTIONS", "DENY")

# CORS configuration
CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOW_CREDENTIALS = True

# Session / CSRF configuration
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

# Static configuration
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Cache configuration
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.dummy.DummyCache",
    }
}

# Debug logging for development and file logging
LOGGING["handlers"]["console"]["level"] = "DEBUG"
LOGGING["handlers"]["core_file"]["filename"] = "app_core_info.log"
LOGGING["loggers"]["switchboard"]["handlers"] = ["console", "switchboard_file"]
LOGGING["loggers"]["django"]["handlers"] = ["console", "django_file"]
LOGGING["loggers"]["core"]["handlers"] = ["console", "core_file"]

# Rest framework settings for development
REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] += [
    "rest_framework.renderers.BrowsableAPIRenderer",
]
REST_FRAMEWORK["DEFAULT_AUTHENTICATION_CLASSES"] += [
    "rest_framework.authentication.SessionAuthentication",
]
