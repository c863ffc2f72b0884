import logging

from app.core.settings import config_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Configures the root logger once per process."""
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=(level or config_settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    _configured = True
