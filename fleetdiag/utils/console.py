"""Colorful console logging for the live run summary."""

import logging
import re
import sys
from datetime import datetime

# ANSI color codes
COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "white": "\033[37m",
    "bright_black": "\033[90m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
    "bright_yellow": "\033[93m",
    "bright_blue": "\033[94m",
    "bright_magenta": "\033[95m",
    "bright_cyan": "\033[96m",
    "bg_red": "\033[41m",
}

LEVEL_COLORS = {
    "DEBUG": COLORS["bright_black"],
    "INFO": COLORS["bright_green"],
    "WARNING": COLORS["bright_yellow"],
    "ERROR": COLORS["bright_red"],
    "CRITICAL": COLORS["bg_red"] + COLORS["white"] + COLORS["bold"],
}

# Component colors for logger names
COMPONENT_COLORS = {
    "fleetdiag.services.session": COLORS["bright_cyan"],
    "fleetdiag.services.coordinator": COLORS["bright_blue"],
    "fleetdiag.services.artifacts": COLORS["cyan"],
    "fleetdiag.services.pool": COLORS["bright_magenta"],
    "fleetdiag.services.connection": COLORS["bright_magenta"],
    "fleetdiag.config": COLORS["green"],
    "default": COLORS["white"],
}

_DURATION_PATTERN = re.compile(r"(\d+\.\d+s)\b")
_STATUS_PATTERN = re.compile(r"\b(SUCCESS|FAILED|SKIPPED)\b")
_STATUS_COLORS = {
    "SUCCESS": COLORS["bright_green"],
    "FAILED": COLORS["bright_red"],
    "SKIPPED": COLORS["bright_yellow"],
}


class ColorfulFormatter(logging.Formatter):
    """Colorful log formatter with component highlighting."""

    def __init__(self, use_colors: bool = True) -> None:
        """Initialize the formatter.

        Args:
            use_colors: Whether to use ANSI colors.
        """
        super().__init__()
        self.use_colors = use_colors

    def _colorize(self, text: str, color: str) -> str:
        """Apply color to text if colors are enabled."""
        if not self.use_colors:
            return text
        return f"{color}{text}{COLORS['reset']}"

    def _get_component_color(self, name: str) -> str:
        for prefix, color in COMPONENT_COLORS.items():
            if prefix != "default" and name.startswith(prefix):
                return color
        return COMPONENT_COLORS["default"]

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created)
        return f"{dt:%H:%M:%S}.{int(record.msecs):03d}"

    def _format_level(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelname, COLORS["white"])
        return self._colorize(f"{record.levelname:<8}", color)

    def _format_component(self, record: logging.LogRecord) -> str:
        name = record.name
        if name.startswith("fleetdiag."):
            name = name[len("fleetdiag.") :]
        color = self._get_component_color(record.name)
        return self._colorize(f"{name:<22}", color)

    def _highlight_message(self, message: str) -> str:
        """Highlight durations and step statuses in log messages."""
        if not self.use_colors:
            return message

        message = _DURATION_PATTERN.sub(
            f"{COLORS['bright_yellow']}\\1{COLORS['reset']}",
            message,
        )
        return _STATUS_PATTERN.sub(
            lambda m: f"{_STATUS_COLORS[m.group(1)]}{m.group(1)}{COLORS['reset']}",
            message,
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with colors."""
        timestamp = self._colorize(self._format_timestamp(record), COLORS["dim"])
        level = self._format_level(record)
        component = self._format_component(record)
        sep = self._colorize("|", COLORS["dim"])
        message = self._highlight_message(record.getMessage())

        line = f"{timestamp} {sep} {level} {sep} {component} {sep} {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(level: str = "INFO", use_colors: bool = True) -> None:
    """Attach the colorful handler to the ``fleetdiag`` logger.

    Colors are disabled automatically when stderr is not a TTY.
    Safe to call more than once.
    """
    if not sys.stderr.isatty():
        use_colors = False

    root = logging.getLogger("fleetdiag")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColorfulFormatter(use_colors=use_colors))
        root.addHandler(handler)
        root.propagate = False

    # Suppress noisy third-party loggers
    logging.getLogger("asyncssh").setLevel(logging.WARNING)
