"""
Base settings for switchboard project.
Containing common settings across all environments.
Environment-specific settings inherit from this base configuration.
"""

import os
from pathlib import Path
import logging

# Setup logging for settings module
logger = logging.getLogger(__name__)

# Load data from environment. Use os.environ[...] to ensure a key error is raised when 1 is missing. Key error results in RuntimeError
try:
    ENVIRONMENT = os.environ["ENVIRONMENT"]
    SECRET_KEY = os.environ["SECRET_KEY"]

    # Base App configuration
    TIME_ZONE = os.environ["TIME_ZONE"]
    BASE_URL = os.environ["BASE_URL"]
    csrf_trusted_origins = os.environ["CSRF_TRUSTED_ORIGINS"]

    # Database configuration
    DB_ENGINE = os.environ["DB_ENGINE"]
    DB_NAME = os.environ["DB_NAME"]
    DB_USER = os.environ["DB_USER"]
    DB_PASSWORD = os.environ["DB_PASSWORD"]
    DB_HOST = os.environ["DB_HOST"]
    DB_PORT = os.environ["DB_PORT"]

    # Redis configuration
    REDIS_URL = os.environ["REDIS_URL"]

    # Celery configuration
    CELERY_BROKER_URL = os.environ["CELERY_BROKER_URL"]
    CELERY_RESULT_BACKEND = os.environ["CELERY_RESULT_BACKEND"]

    # Email Configuration
    EMAIL_BACKEND = os.environ["EMAIL_BACKEND"]
    EMAIL_HOST = os.environ["EMAIL_HOST"]
    EMAIL_PORT = os.environ["EMAIL_PORT"]
    EMAIL_USE_TLS = os.environ["EMAIL_USE_TLS"].lower() == "true"
    EMAIL_HOST_USER = os.environ["EMAIL_HOST_USER"]
    EMAIL_HOST_PASSWORD = os.environ["EMAIL_HOST_PASSWORD"]
    DEFAULT_FROM_EMAIL = os.environ["DEFAULT_FROM_EMAIL"]

    # Telnyx configuration
    TELNYX_API_KEY = os.environ["TELNYX_API_KEY"]
    TELNYX_MESSAGING_PROFILE_ID = os.environ["TELNYX_MESSAGING_PROFILE_ID"]
    TELNYX_CONNECTION_ID = os.environ["TELNYX_CONNECTION_ID"]
    TELNYX_WEBHOOK_URL = os.environ["TELNYX_WEBHOOK_URL"]

    # Google configuration
    GOOGLE_OAUTH_CLIENT_ID = os.environ["GOOGLE_OAUTH_CLIENT_ID"]
    GOOGLE_OAUTH_CLIENT_SECRET = os.environ["GOOGLE_OAUTH_CLIENT_SECRET"]

    # Microsoft configuration
    MS_CLIENT_ID = os.environ["MS_CLIENT_ID"]
    MS_CLIENT_SECRET = os.environ["MS_CLIENT_SECRET"]
    MS_AUTH_TENANT = os.environ["MS_AUTH_TENANT"]
except KeyError as e:
    missing_variable = e.args[0]
    raise RuntimeError(f"Environment variable {missing_variable} is not set")


# Base App setup
API_VERSION = "v1"
LANGUAGE_CODE = "en-us"
USE_I18N = True
USE_TZ = True
BASE_DIR = Path(__file__).resolve().parent.parent.parent
CSRF_TRUSTED_ORIGINS = [
    origin.strip() for origin in csrf_trusted_origins.split(",") if origin.strip()
]

# Database configuration
DATABASES = {
    "default": {
        "ENGINE": DB_ENGINE,
        "NAME": DB_NAME,
        "USER": DB_USER,
        "PASSWORD": DB_PASSWORD,
        "HOST": DB_HOST,
        "PORT": DB_PORT,
        "OPTIONS": {},
    }
}
# Default primary key type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Celery configuration
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE

# Telephony configuration
TELNYX_API_BASE_URL = "https://api.telnyx.com/v2"
TELNYX_REQUEST_TIMEOUT = 30
# WebRTC: telephony credentials hang off a credential connection
TELNYX_SIP_CONNECTION_ID = os.environ.get("TELNYX_SIP_CONNECTION_ID", TELNYX_CONNECTION_ID)
TELNYX_SIP_URI = os.environ.get("TELNYX_SIP_URI", "sip.telnyx.com")
TELNYX_WS_URI = os.environ.get("TELNYX_WS_URI", "wss://rtc.telnyx.com")
RING_TIMEOUT_SECONDS = 15
DTMF_TIMEOUT_SECONDS = 5
CENTRAL_FORWARDING_NUMBER = os.environ.get("CENTRAL_FORWARDING_NUMBER", "+18446942885")
VOICEMAIL_GREETING_BASE_URL = os.environ.get(
    "VOICEMAIL_GREETING_BASE_URL",
    "https://raw.githubusercontent.com/GavvlLaw/voicemail-greetings/main/",
)
UNAVAILABLE_PROMPT_URL = f"{VOICEMAIL_GREETING_BASE_URL}Unavailable"
VOICEMAIL_RECORDING_DELAY_SECONDS = 1

# Google configuration
GOOGLE_REDIRECT_URI = f"{BASE_URL}/api/calendar/google/callback/"
GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",
]

# Microsoft configuration
MS_REDIRECT_URI = f"{BASE_URL}/api/calendar/microsoft/callback/"
MS_SCOPES = [
    "openid",
    "profile",
    "email",
    "offline_access",
    "User.Read",
    "Calendars.Read",
]

# Calendar sync configuration
CALENDAR_SYNC_WINDOW_DAYS = 7

# User Model
AUTH_USER_MODEL = "core.User"

# Application definition
DJANGO_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]

THIRD_PARTY_APPS = [
    "rest_framework",
    "rest_framework.authtoken",
    "corsheaders",
    "django_celery_beat",
    "drf_spectacular",
    "django_filters",
]

LOCAL_APPS = [
    "core",
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "switchboard.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "switchboard.wsgi.application"

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]

# REST Framework configuration
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.TokenAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.SearchFilter",
        "rest_framework.filters.OrderingFilter",
    ],
}

# Spectacular (OpenAPI/Swagger) Settings
SPECTACULAR_SETTINGS = {
    "TITLE": "Switchboard API",
    "DESCRIPTION": (
        "Telephony back office: users, Telnyx numbers, calls, SMS, voicemail, "
        "calendar availability and SMS automations."
    ),
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SCHEMA_PATH_PREFIX": "/api/",
    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": False,
    "TAGS": [
        {"name": "User Management", "description": "Users, availability and voicemail greetings"},
        {"name": "Calls", "description": "Call history and outbound calls"},
        {"name": "SMS", "description": "SMS history and sending"},
        {"name": "Voicemail", "description": "Voicemail inbox"},
        {"name": "SMS Automation", "description": "Templates and automation rules"},
        {"name": "Calendar", "description": "Calendar integrations and synced events"},
        {"name": "Phone Numbers", "description": "Telnyx number inventory - Staff only"},
        {"name": "Telnyx", "description": "Telnyx account configuration - Staff only"},
        {"name": "Webhooks", "description": "Telnyx event ingress"},
    ],
    "COMPONENT_SECURITY_SCHEMES": {
        "TokenAuth": {
            "type": "apiKey",
            "in": "header",
            "name": "Authorization",
            "description": "Token-based authentication. Format: `Token <your-token>`",
        }
    },
    "SECURITY": [{"TokenAuth": []}],
}

# Logging configuration
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {funcName:s} {message}",
            "style": "{",
        },
        "basic": {
            "format": "{levelname} {module} {message}",
            "style": "{",
        },
        "detailed": {
            "()": "switchboard.logging_formatters.DetailedFormatter",
            "fmt":"{levelname} {asctime} {name} {funcName:s} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "level": "WARNING",
            "class": "logging.StreamHandler",
            "formatter": "basic",
        },
        "django_file": {
            "level": "INFO",
            "class": "logging.FileHandler",
            "filename": "django_info.log",
            "formatter": "verbose",
        },
        "switchboard_file": {
            "level": "INFO",
            "class": "logging.FileHandler",
            "filename": "switchboard_info.log",
            "formatter": "verbose",
        },
        "core_file": {
            "level": "INFO",
            "class": "logging.FileHandler",
            "filename": "switchboard_info.log",
            "formatter": "detailed",
        },
        "email_admins": {
            "level": "ERROR",
            "class": "django.utils.log.AdminEmailHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
    },
    "loggers": {
        "switchboard": {
            "handlers": ["console", "switchboard_file", "email_admins"],
            "propagate": False,
        },
        "django": {
            "handlers": ["console", "django_file"],
            "propagate": False,
        },
        "core": {
            "handlers": ["console", "core_file", "email_admins"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
