from pythonjsonlogger import jsonlogger
import logging
import logging.handlers
import datetime
import os

LOG_FORMAT = '%(timestamp)s %(level)s %(logger)s %(message)s'


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        # time the record was made, not the time it was shipped
        log_record['timestamp'] = datetime.datetime.fromtimestamp(record.created, datetime.timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name


class LogstashTcpHandler(logging.handlers.SocketHandler):
    """Ships newline-delimited JSON to a Logstash tcp input.

    The socket is kept open between records and reopened with backoff after
    a failure.
    """

    def makePickle(self, record):
        return (self.format(record) + '\n').encode('utf-8')


def _json_handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(CustomJsonFormatter(LOG_FORMAT))
    return handler


def get_logger(name: str = "storefront") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    if logger.handlers:
        return logger

    logstash_host = os.getenv("LOGSTASH_HOST")
    if logstash_host:
        logger.addHandler(_json_handler(LogstashTcpHandler(logstash_host, int(os.getenv("LOGSTASH_PORT", "5000")))))
    logger.addHandler(_json_handler(logging.StreamHandler()))
    return logger


logger = get_logger()
