"""Structured logging for the Scell SDK.

Every SDK module logs through ``get_logger``. While a request is in flight
its method, path and credential kind are bound to the structlog context, so
retry warnings and error events carry them without repeating them at each
call site. Applications that want the SDK's JSON output call
``setup_logging`` once at startup; handlers the application already
installed are left in place.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Union

import structlog
from structlog.types import Processor

# Handler installed by the last setup_logging call
_handler: Optional[logging.Handler] = None


def setup_logging(
    level: Union[str, int] = logging.INFO,
    json_format: bool = True,
) -> None:
    """
    Route SDK log events to stdout through the standard library.

    Calling it again replaces the handler it installed earlier instead of
    adding a second one.

    Args:
        level: Logging level (default: INFO)
        json_format: Whether to use JSON format (default: True)
    """
    global _handler

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    if _handler is not None and _handler in root.handlers:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stdout)
    _handler.setLevel(level)
    _handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(_handler)
    root.setLevel(level)

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get the structured logger used by an SDK module."""
    return structlog.get_logger(name)


def bind_context(tenant: Optional[str] = None, **kwargs: Any) -> None:
    """
    Bind values to every SDK log event emitted from the current task.

    Args:
        tenant: Tenant the calls are made for, when acting as a partner
        **kwargs: Other context variables, e.g. a request id
    """
    if tenant is not None:
        kwargs["tenant"] = tenant
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context(*keys: str) -> None:
    """
    Clear context variables from the current context.

    Args:
        *keys: Context variable keys
    """
    structlog.contextvars.unbind_contextvars(*keys)


@contextmanager
def request_context(method: str, path: str, auth: Optional[str] = None) -> Iterator[None]:
    """Bind the request being sent to the events logged inside the block."""
    context = {"method": method, "path": path}
    if auth is not None:
        context["auth"] = auth
    with structlog.contextvars.bound_contextvars(**context):
        yield
