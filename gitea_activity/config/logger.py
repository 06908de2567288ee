import json
import logging
import sys

from gitea_activity.config.config import LOG_LEVEL

# Атрибуты, которые есть у любой LogRecord; всё остальное пришло через extra=
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class ExtraFormatter(logging.Formatter):
    """Форматтер, дописывающий поля из extra= в конец строки в виде JSON."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED and not key.startswith("_")
        }
        if extra:
            line = f"{line} {json.dumps(extra, ensure_ascii=False, default=str)}"

        return line


def setup_logger(name: str = "gitea_activity", level: str = LOG_LEVEL) -> logging.Logger:
    """
    Создаёт логгер приложения с выводом в stdout.

    :param name: Имя логгера
    :param level: Уровень логирования
    :return: Настроенный логгер
    """
    log = logging.getLogger(name)

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            ExtraFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log.addHandler(handler)

    log.setLevel(level.upper())
    return log


logger = setup_logger()
