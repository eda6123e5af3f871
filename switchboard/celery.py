import os
from celery import Celery
from django.conf import settings

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE",
    f"switchboard.settings.{os.environ.get('ENVIRONMENT', 'development')}",
)

# Create the Celery app
app = Celery("switchboard")

# Load Celery configuration from Django Settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Discover tasks from all installed apps
app.autodiscover_tasks(lambda: settings.INSTALLED_APPS)

# Set time limit for tasks. 10 minute hard limit and 9 minute soft limit
app.conf.task_time_limit = 600
app.conf.task_soft_time_limit = 540

# Configure worker settings to handle connection issues
app.conf.broker_connection_retry = True
app.conf.broker_connection_retry_on_startup = True
app.conf.broker_connection_max_retries = 10

# Configure worker settings for tasks
app.conf.worker_concurrency = 4
app.conf.worker_prefetch_multiplier = 1
app.conf.worker_max_tasks_per_child = 100

# Periodic task configuration
app.conf.beat_schedule = {
    # Fire scheduledTime automations, every minute. Expires before the next minute starts
    "process-scheduled-automations": {
        "task": "core.tasks.process_scheduled_automations",
        "schedule": 60.0,
        "options": {
            "queue": "celery",
            "expires": 55,
        },
    },
    # Run delayed automation actions that are due but were never executed, every minute
    "dispatch-due-scheduled-actions": {
        "task": "core.tasks.dispatch_due_scheduled_actions",
        "schedule": 60.0,
        "options": {
            "queue": "celery",
            "expires": 55,
        },
    },
    # Sync calendars whose sync frequency elapsed, every 5 minutes
    "sync-due-calendars": {
        "task": "core.tasks.sync_due_calendars",
        "schedule": 300.0,
        "options": {
            "queue": "celery",
            "expires": 300,
        },
    },
    # Refresh soon expiring Google tokens, every 12 hours
    "refresh-google-calendar-tokens": {
        "task": "core.tasks.refresh_google_calendar_tokens",
        "schedule": 43200.0,
        "options": {"queue": "celery"},
    },
}
