import sys
import logging
from typing import Any, Callable, Dict, Iterable

from loguru import logger

from proclubs.config.settings import AppSettings

SENSITIVE_KEYS = ("key", "token", "password", "secret", "cookie")


def _mask(value: str) -> str:
    if len(value) > 8:
        return value[:4] + "****" + value[-4:]
    return "********"


def make_sensitive_data_filter(
    secrets: Iterable[str],
) -> Callable[[Dict[str, Any]], bool]:
    """Builds a loguru filter masking known secrets and sensitive extra values."""
    secrets = [secret for secret in secrets if secret]

    def sensitive_data_filter(record: Dict[str, Any]) -> bool:
        extra = record.get("extra")
        if isinstance(extra, dict):
            for extra_key, extra_value in extra.items():
                if any(sk in extra_key.lower() for sk in SENSITIVE_KEYS):
                    extra[extra_key] = (
                        _mask(extra_value) if isinstance(extra_value, str) else "********"
                    )
        for secret in secrets:
            if secret in record["message"]:
                record["message"] = record["message"].replace(secret, "********")
        return True  # Keep the record after masking

    return sensitive_data_filter


class InterceptHandler(logging.Handler):
    """Routes stdlib logging (httpx, apscheduler) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(settings: AppSettings) -> None:
    """Configures Loguru logger based on application settings."""
    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=True,
        diagnose=False,  # Locals may hold credentials
        filter=make_sensitive_data_filter(
            [settings.supabase_key, settings.supabase_service_key]
        ),
    )
    logger.info(f"Logging initialized with level: {settings.log_level}")

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logger.info("Standard logging intercepted.")
