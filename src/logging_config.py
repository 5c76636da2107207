import logging

from src.config import settings

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s '%(filename)s:%(lineno)d' | %(message)s"

def configure_logging(level: str = None):
    """Configure root logging once for the application process"""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%m/%d %H:%M:%S",
        force=True
    )
