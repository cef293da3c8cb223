from __future__ import annotations
import logging


def setup_console_logging(level: int | str = logging.INFO) -> None:
    """
    Call once at process start. Prints engine and api logs to console.

    `level` may be a logging constant or a name such as "DEBUG".
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    if root.handlers:
        # already configured (uvicorn, pytest)
        root.setLevel(level)
        return

    root.setLevel(level)
    h = logging.StreamHandler()
    fmt = logging.Formatter(
        "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    h.setFormatter(fmt)
    root.addHandler(h)
    # SQL echo stays quiet unless asked for explicitly
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
