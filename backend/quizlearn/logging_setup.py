from __future__ import annotations
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int | str = "INFO") -> logging.Logger:
	"""Route all records to stdout with a single plain-text handler.

	Safe to call more than once; later calls replace the handler.
	"""
	handler = logging.StreamHandler(sys.stdout)
	handler.setFormatter(logging.Formatter(LOG_FORMAT))
	logging.basicConfig(level=level, handlers=[handler], force=True)
	logging.getLogger("passlib").setLevel(logging.ERROR)
	logging.getLogger("httpx").setLevel(logging.WARNING)
	return logging.getLogger("quizlearn")
