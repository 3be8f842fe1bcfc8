"""
Centralized Logging Configuration for ExamGuard

Root handlers for the whole process plus a separate audit file for the
proctoring pipeline (every violation, degradation and observer change).
"""
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Logger that carries the proctoring audit trail
AUDIT_LOGGER = "examguard.proctor"

# Third-party loggers that drown out session events at INFO
NOISY_LOGGERS: Dict[str, int] = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "websockets": logging.WARNING,
    "asyncio": logging.WARNING,
}


def _rotating(path: Path, max_mb: int, backups: int, level: int, formatter: logging.Formatter):
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8"
    )
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def setup_logging(
    service_name: str = "examguard",
    level: str = "INFO",
    log_to_file: bool = True,
    log_to_console: bool = True,
    log_dir: Union[str, Path] = "logs"
) -> logging.Logger:
    """
    Set up logging for the service

    Args:
        service_name: Prefix for the log file names
        level: Root log level (DEBUG, INFO, WARNING, ERROR)
        log_to_file: Write <service>_<date>.log, <service>_errors.log and
            <service>_proctor_audit.log under log_dir
        log_to_console: Write to stdout
        log_dir: Directory for the rotating log files

    Returns:
        The service logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)

    log_file = None
    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        log_file = log_path / f"{service_name}_{datetime.now():%Y-%m-%d}.log"
        root_logger.addHandler(_rotating(log_file, 10, 5, logging.DEBUG, formatter))
        root_logger.addHandler(
            _rotating(log_path / f"{service_name}_errors.log", 5, 3, logging.ERROR, formatter)
        )

        # Separate audit trail for the proctoring pipeline
        audit = logging.getLogger(AUDIT_LOGGER)
        audit.handlers = []
        audit.addHandler(
            _rotating(log_path / f"{service_name}_proctor_audit.log", 20, 10, logging.INFO, formatter)
        )

    logger = logging.getLogger(service_name)
    logger.info(f"=== {service_name.upper()} logging ready (level={level}) ===")
    if log_file is not None:
        logger.info(f"Log file: {log_file}")

    return logger
