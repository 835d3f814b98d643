import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from routesync._internal import settings

_colors = {
    "secondary": "grey58",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "code": "bold sea_green3",
}

console = Console(theme=Theme(_colors))


def configure_logging(
    level: Union[int, str] = settings.LOG_LEVEL,
    log_file: Optional[Path] = None,
    file_level: Union[int, str] = settings.FILE_LOG_LEVEL,
) -> None:
    routesync_logger = logging.getLogger("routesync")
    routesync_logger.handlers.clear()

    stdout_handler = RichHandler(console=console, show_path=False, markup=False)
    stdout_handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    stdout_handler.setLevel(level)
    routesync_logger.addHandler(stdout_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        file_handler.setLevel(file_level)
        routesync_logger.addHandler(file_handler)

    # the logger allows all messages, filtering is done by the handlers
    routesync_logger.setLevel(logging.DEBUG)
    routesync_logger.propagate = False
