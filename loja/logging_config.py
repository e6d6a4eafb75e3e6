import logging

from sqlalchemy.engine import make_url

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    for handler in root.handlers:
        if getattr(handler, "_loja_handler", False):
            handler.setLevel(level.upper())
            return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._loja_handler = True
    root.addHandler(handler)


def mask_database_url(database_url: str) -> str:
    """Render a database URL with the password hidden, for log lines."""
    return make_url(database_url).render_as_string(hide_password=True)
