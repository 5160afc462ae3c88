import logging

from reminder_parser.core.settings import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_HANDLER_NAME = "reminder_parser"


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Attach one stream handler to the root logger and set its level.

    Safe to call repeatedly: the handler is installed once and only the
    level is updated on later calls. Without an explicit level the
    APP_LOG_LEVEL setting applies.
    """
    if level is None:
        level = get_settings().app_log_level
    root = logging.getLogger()
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved
    root.setLevel(level)

    if not any(handler.get_name() == _HANDLER_NAME for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    # Transport loggers never go below WARNING.
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
    return root
