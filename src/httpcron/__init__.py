"""httpcron: fire HTTP requests on cron schedules with timeouts and retries."""

__version__ = "0.1.0"
