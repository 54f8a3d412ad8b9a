"""
Structured JSON logging for the sales API.

Every record is written to stdout as one JSON object via python-json-logger,
or as a plain line when ``LOG_FORMAT=text`` for local development.
"""
import logging
import sys
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

LOG_LEVELS = {
	"DEBUG": logging.DEBUG,
	"INFO": logging.INFO,
	"WARNING": logging.WARNING,
	"ERROR": logging.ERROR,
	"CRITICAL": logging.CRITICAL,
}

DEFAULT_LOGGER_NAME = "sales-api"


class CustomJsonFormatter(JsonFormatter):
	"""
	JSON formatter that adds timestamp, level, logger, module and function.
	"""

	def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
		super().add_fields(log_record, record, message_dict)

		if not log_record.get("timestamp"):
			log_record["timestamp"] = self.formatTime(record, self.datefmt)

		if log_record.get("level"):
			log_record["level"] = log_record["level"].upper()
		else:
			log_record["level"] = record.levelname

		log_record["logger"] = record.name
		log_record["module"] = record.module
		log_record["function"] = record.funcName


def setup_logger(
	name: str = DEFAULT_LOGGER_NAME,
	level: Optional[str] = None,
	format_type: str = "json",
) -> logging.Logger:
	"""
	Configure a logger with a single stdout handler.

	Args:
		name: Logger name
		level: Log level name; unknown names fall back to INFO
		format_type: "json" or "text"

	Returns:
		Configured logger instance
	"""
	log_level = LOG_LEVELS.get((level or "INFO").upper(), logging.INFO)

	logger = logging.getLogger(name)
	logger.setLevel(log_level)

	# Remove existing handlers to avoid duplicates when apps are rebuilt
	logger.handlers.clear()

	handler = logging.StreamHandler(sys.stdout)
	handler.setLevel(log_level)

	if format_type == "json":
		formatter: logging.Formatter = CustomJsonFormatter(
			fmt="%(timestamp)s %(level)s %(logger)s %(module)s %(function)s %(message)s",
			datefmt="%Y-%m-%dT%H:%M:%S",
		)
	else:
		formatter = logging.Formatter(
			fmt="%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s - %(message)s",
			datefmt="%Y-%m-%d %H:%M:%S",
		)

	handler.setFormatter(formatter)
	logger.addHandler(handler)
	logger.propagate = False

	return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
	"""Return the named logger, configuring it on first use."""
	logger = logging.getLogger(name)
	if not logger.handlers:
		return setup_logger(name)
	return logger
