import logging

from gst_ledger.config import settings


def configure_logging(level: str = None) -> None:
    """Set up root logging for scripts and embedding services."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    # Suppress SQLAlchemy logs unless debugging
    if not settings.DEBUG:
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
