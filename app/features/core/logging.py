from .config import get_settings


def setup_logging():
    """
    Configure logging for the application.
    Uses structured logging with JSON format in production.
    """
    from .structured_logging import configure_logging

    settings = get_settings()
    configure_logging(
        level=settings.LOG_LEVEL.upper(),
        format_type=settings.LOG_FORMAT,
        enable_json=settings.ENVIRONMENT.lower() == "production",
        log_file=settings.LOG_FILE or None,
    )
