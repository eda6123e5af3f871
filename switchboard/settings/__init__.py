"""
Django settings package for Switchboard.
Settings are chosen depending on the Environment.

The module contains multiple configurations, in addition to a base configuration.
Entry points (manage.py, wsgi, asgi, celery) point DJANGO_SETTINGS_MODULE at
the concrete module directly; importing the bare package selects one from
ENVIRONMENT.
"""

import os

if os.environ.get("DJANGO_SETTINGS_MODULE") == "switchboard.settings":
    try:
        ENVIRONMENT = os.environ["ENVIRONMENT"]
    except KeyError as e:
        missing_variable = e.args[0]
        raise RuntimeError(f"Environment variable {missing_variable} is not set")

    if ENVIRONMENT == "production":
        from .production import *
    elif ENVIRONMENT == "development":
        from .development import *
    elif ENVIRONMENT == "testing":
        from .testing import *
    else:
        raise RuntimeError(f"Unknown ENVIRONMENT '{ENVIRONMENT}'")
