import logging
from typing import Optional

from scrutin.config import load_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ROOT_LOGGER = "scrutin"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Installe un unique handler console sur le logger racine du paquet

    Args:
        level: Niveau de journalisation (par défaut celui des réglages)

    Returns:
        logging.Logger: Le logger racine du paquet
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level or load_settings().log_level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
