"""
Testing settings for Switchboard project.

These settings are optimized for fast test execution and should only be used
when running tests.
"""

import os

# Placeholder values so base.py can load without a .env file
TEST_ENVIRONMENT_DEFAULTS = {
    "ENVIRONMENT": "testing",
    "SECRET_KEY": "test-secret-key-not-for-production",
    "TIME_ZONE": "UTC",
    "BASE_URL": "http://testserver",
    "CSRF_TRUSTED_ORIGINS": "http://testserver",
    "DB_ENGINE": "django.db.backends.sqlite3",
    "DB_NAME": ":memory:",
    "DB_USER": "",
    "DB_PASSWORD": "",
    "DB_HOST": "",
    "DB_PORT": "",
    "REDIS_URL": "redis://localhost:6379/0",
    "CELERY_BROKER_URL": "memory://",
    "CELERY_RESULT_BACKEND": "cache+memory://",
    "EMAIL_BACKEND": "django.core.mail.backends.locmem.EmailBackend",
    "EMAIL_HOST": "localhost",
    "EMAIL_PORT": "25",
    "EMAIL_USE_TLS": "False",
    "EMAIL_HOST_USER": "",
    "EMAIL_HOST_PASSWORD": "",
    "DEFAULT_FROM_EMAIL": "noreply@switchboard.test",
    "TELNYX_API_KEY": "KEYTEST",
    "TELNYX_MESSAGING_PROFILE_ID": "test-messaging-profile",
    "TELNYX_CONNECTION_ID": "test-connection",
    "TELNYX_WEBHOOK_URL": "http://testserver/api/webhooks/telnyx/",
    "GOOGLE_OAUTH_CLIENT_ID": "test-google-client",
    "GOOGLE_OAUTH_CLIENT_SECRET": "test-google-secret",
    "MS_CLIENT_ID": "test-ms-client",
    "MS_CLIENT_SECRET": "test-ms-secret",
    "MS_AUTH_TENANT": "common",
}
for key, value in TEST_ENVIRONMENT_DEFAULTS.items():
    os.environ.setdefault(key, value)

from .base import *  # noqa: E402

# Test-specific settings
DEBUG = False
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',  # Fast hashing for tests
]

# Use in-memory database for faster tests
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}


# Disable migrations for faster test setup
class DisableMigrations:
    def __contains__(self, item):
        return True

    def __getitem__(self, item):
        return None


MIGRATION_MODULES = DisableMigrations()

# Use dummy cache for tests
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.dummy.DummyCache',
    }
}

# Celery runs inline for tests
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# Email backend for tests
EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'test_staticfiles'

# Security settings (relaxed for tests)
ALLOWED_HOSTS = ['testserver', 'localhost', '127.0.0.1']
SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

# CORS settings for tests
CORS_ALLOW_ALL_ORIGINS = True

# Logging configuration for tests
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
    },
    'loggers': {
        'django': {
            'handlers': ['null'],
            'propagate': False,
        },
        'switchboard': {
            'handlers': ['null'],
            'propagate': False,
        },
        'core': {
            'handlers': ['null'],
            'propagate': False,
        },
    },
}
