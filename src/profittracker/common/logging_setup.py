"""
Logging Setup mit Rotation für den Profit-Tracker
"""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path


def setup_logging(log_path="logs/profittracker.log", level="INFO"):
    """
    Konfiguriert Logging mit Rotation und Console Output

    Args:
        log_path (str): Pfad zur Log-Datei
        level (str): Logging Level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        logging.Logger: Konfigurierter Paket-Logger
    """
    Path(log_path).parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("profittracker")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Bestehende Handler entfernen (Streamlit lädt Module neu)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # 2MB, 5 Backups
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=2 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger
