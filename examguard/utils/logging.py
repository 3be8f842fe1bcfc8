"""
Terminal logging helpers for the API layer.

Request lines are colored by status class; the startup banner lists the
endpoints and the runtime configuration.
"""
import logging
import sys
from datetime import datetime
from typing import Dict, Optional


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    BG_RED = "\033[41m"


def status_color(status: int) -> str:
    if status >= 500:
        return Colors.BG_RED + Colors.WHITE
    if status >= 400:
        return Colors.YELLOW if status in (401, 403, 404, 409, 422) else Colors.RED
    return Colors.GREEN


class ColoredFormatter(logging.Formatter):
    """HH:MM:SS.mmm LEVEL [logger] message"""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BG_RED + Colors.WHITE,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        return (
            f"{Colors.DIM}{stamp}{Colors.RESET} "
            f"{color}{record.levelname:8}{Colors.RESET} "
            f"[{Colors.CYAN}{record.name}{Colors.RESET}] {record.getMessage()}"
        )


def setup_logger(name: str = "examguard.api", level: int = logging.INFO) -> logging.Logger:
    """Colored stdout logger that does not propagate to the root handlers"""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


api_logger = setup_logger()


def log_request(method: str, path: str, status: int, duration_ms: int):
    """One line per completed HTTP request"""
    api_logger.info(
        f"{method:6} {path} {status_color(status)}{status}{Colors.RESET} "
        f"{Colors.DIM}{duration_ms}ms{Colors.RESET}"
    )


def log_error(error_type: str, message: str):
    api_logger.error(f"{Colors.BOLD}{error_type}{Colors.RESET}: {message}")


def log_startup(service_name: str, port: int, details: Optional[Dict[str, object]] = None):
    """Startup banner with endpoints and configuration"""
    rule = f"{Colors.BOLD}{Colors.GREEN}{'=' * 60}{Colors.RESET}"
    print(f"\n{rule}")
    print(f"{Colors.BOLD}{Colors.GREEN}  {service_name} STARTED{Colors.RESET}")
    print(rule)
    print(f"  HTTP:         {Colors.CYAN}http://localhost:{port}{Colors.RESET}")
    print(f"  Live channel: {Colors.CYAN}ws://localhost:{port}/ws{Colors.RESET}")

    if details:
        print(f"\n{Colors.DIM}Configuration:{Colors.RESET}")
        for key, value in details.items():
            print(f"  {key + ':':<20} {Colors.CYAN}{value}{Colors.RESET}")
    print()
