import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(debug: bool = False, log_file: str | None = None) -> None:
    """Configure root handlers and the package log level.

    Debug mode lowers the package level to DEBUG so per-link skip messages and
    request traces become visible; otherwise only warnings and errors are shown.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = []
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)
    for handler in handlers:
        root_logger.addHandler(handler)

    LOGGER.setLevel(logging.DEBUG if debug else logging.WARNING)


LOGGER = logging.getLogger("transcription")

__all__ = ["configure_logging", "LOGGER", "LOG_FORMAT"]
