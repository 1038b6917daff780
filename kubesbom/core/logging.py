import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

import structlog
from rich.console import Console

# Central console for rich output
console = Console(stderr=True)


class RichConsoleRenderer:
    """
    A structlog renderer that uses rich.Console to render events.
    It formats events as key=value pairs and applies rich styling based on
    an '_style' key in the event dict, and standard log levels.
    """

    def __init__(self):
        self._console = Console(stderr=True)
        self._level_styles = {
            'debug': 'dim',
            'info': 'green',
            'warning': 'yellow',
            'error': 'bold red',
            'critical': 'bold magenta',
        }

    def __call__(self, logger, name, event_dict):
        # Pop custom style hint so it is not printed as a key-value pair
        custom_style = event_dict.pop('_style', None)

        event = event_dict.pop('event', '')
        log_level = event_dict.pop('level', 'info')
        logger_name = event_dict.pop('logger', 'root')
        timestamp = event_dict.pop('timestamp', '')
        exc_info = event_dict.pop('exc_info', None)
        exception = event_dict.pop('exception', None)
        stack_info = event_dict.pop('stack_info', None)

        parts = []
        if timestamp:
            parts.append(f"[dim]{timestamp}[/dim]")
        if logger_name:
            parts.append(f"[bold]{logger_name}[/bold]")

        level_style = self._level_styles.get(log_level, 'white')
        parts.append(f"[{level_style}]{log_level:<8}[/{level_style}]")

        parts.append(event)

        for key, value in event_dict.items():
            parts.append(f"[cyan]{key}[/cyan]=[green]{value!r}[/green]")

        final_msg = ' '.join(parts)

        if exception:
            final_msg += f"\n[red]{exception}[/red]"
        elif exc_info:
            final_msg += f"\n[red]{exc_info}[/red]"

        if stack_info:
            final_msg += f"\n[dim]{stack_info}[/dim]"

        self._console.print(final_msg, style=custom_style)

        # Raise DropEvent to prevent the logger factory from printing an empty line
        raise structlog.DropEvent


def drop_style_processor(logger, method_name, event_dict):
    """
    Remove the internal '_style' key if it exists.
    Used as a fallback to ensure it never leaks into JSON/standard logs.
    """
    event_dict.pop('_style', None)
    return event_dict


def setup_logging(level: str = 'INFO') -> None:
    """
    Configure structured logging for the application.
    Called once by the CLI callback.
    """
    logging.basicConfig(format='%(message)s', stream=sys.stderr, level=level)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if os.getenv('ENV') == 'production':
        processors = shared_processors + [
            drop_style_processor,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            RichConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# Set while a scan batch runs; worker threads inherit it through a copied context
_batch_muted: ContextVar[bool] = ContextVar('kubesbom_batch_muted', default=False)


class ScanLogger:
    """
    structlog logger that stays silent while a scan batch is muted.

    Muting is scoped to the current context rather than the process: every
    ScanLogger used by the same invocation (its runner, filter and file
    helpers included) goes quiet, while other invocations and the global
    structlog configuration are left alone.
    """

    def __init__(self, name: str = 'scanner', debug: bool = True):
        self._logger = structlog.get_logger(name)
        self._debug = debug

    @property
    def muted(self) -> bool:
        return _batch_muted.get()

    @contextmanager
    def mute(self) -> Iterator['ScanLogger']:
        """Silence every ScanLogger in this context until the block exits."""
        token = _batch_muted.set(True)
        try:
            yield self
        finally:
            _batch_muted.reset(token)

    def _emit(self, method: str, event: str, **kwargs: Any) -> None:
        if self.muted:
            return
        getattr(self._logger, method)(event, **kwargs)

    def debug(self, event: str, **kwargs: Any) -> None:
        if self._debug:
            self._emit('debug', event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._emit('info', event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._emit('warning', event, **kwargs)


def get_logger(name: str) -> ScanLogger:
    """Module logger for code that runs inside a scan batch."""
    return ScanLogger(name)
