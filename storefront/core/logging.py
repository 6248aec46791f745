"""
Logging configuration for the Storefront API
Provides structured JSON logging for production environments
"""
import logging
import logging.config
import os
import structlog
import sys
import time
import uuid
from typing import Any, Dict
from storefront.core.config import settings


def setup_logging() -> None:
    """Configure structured logging for the application"""
    is_production = settings.ENVIRONMENT == "production"

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s %(pathname)s %(lineno)d %(funcName)s %(process)d %(thread)d"
            },
            "console": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if is_production else "console",
                "stream": sys.stdout
            }
        },
        "loggers": {
            "": {  # Root logger
                "handlers": ["console"],
                "level": settings.LOG_LEVEL,
                "propagate": False
            },
            "uvicorn": {
                "handlers": ["console"],
                "level": "INFO",
                "propagate": False
            },
            "uvicorn.access": {
                "handlers": ["console"],
                "level": "INFO",
                "propagate": False
            },
            "sqlalchemy.engine": {
                "handlers": ["console"],
                "level": "WARNING",
                "propagate": False
            },
            "storefront": {
                "handlers": ["console"],
                "level": settings.LOG_LEVEL,
                "propagate": False
            }
        }
    }

    # File handler only exists in production; dictConfig opens every declared handler
    if is_production:
        os.makedirs("logs", exist_ok=True)
        logging_config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": "logs/app.log",
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "formatter": "json"
        }
        logging_config["loggers"][""]["handlers"].append("file")
        logging_config["loggers"]["storefront"]["handlers"].append("file")

    logging.config.dictConfig(logging_config)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service_context,
            structlog.processors.JSONRenderer() if is_production
            else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp every entry with the service identity"""
    event_dict["service"] = "storefront-api"
    event_dict["version"] = "1.0.0"
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance"""
    return structlog.get_logger(name or "storefront")


class LoggingMiddleware:
    """
    ASGI middleware that gives every HTTP request an id, echoes it back in
    X-Request-ID and logs one completion line with status and duration.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = uuid.uuid4().hex
        client = scope.get("client")
        request_logger = get_logger("storefront.request").bind(
            request_id=request_id,
            method=scope["method"],
            path=scope["path"],
            client=client[0] if client else None,
        )

        started = time.perf_counter()
        status_code = 500

        async def send_with_request_id(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                message.setdefault("headers", [])
                message["headers"] = list(message["headers"]) + [(b"x-request-id", request_id.encode())]
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        except Exception:
            request_logger.error("Unhandled error while serving request", exc_info=True)
            raise
        finally:
            request_logger.info(
                "Request handled",
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )


SECURITY_LEVELS = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.ERROR,
}


def log_auth_event(event_type: str, kind: str, email: str, success: bool, **kwargs):
    """Login and signup outcomes for buyer and staff principals; never pass secrets."""
    get_logger("storefront.auth").info(
        "Auth event",
        event_type=event_type,
        kind=kind,
        email=email,
        success=success,
        **kwargs
    )


def log_business_event(event_type: str, actor_id: int = None, **kwargs):
    """Order, staff and catalog changes, attributed to the acting principal."""
    get_logger("storefront.business").info("Business event", event_type=event_type, actor_id=actor_id, **kwargs)


def log_security_event(event_type: str, severity: str = "medium", **kwargs):
    level = SECURITY_LEVELS.get(severity, logging.WARNING)
    get_logger("storefront.security").log(level, "Security event", event_type=event_type, severity=severity, **kwargs)
