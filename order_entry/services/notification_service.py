"""User-facing notices collected while a draft is edited."""
import enum
import logging
from typing import List

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class NoticeLevel(str, enum.Enum):
    """Same categories the UI shell uses for flashed messages."""
    SUCCESS = 'success'
    INFO = 'info'
    WARNING = 'warning'


class Notice(BaseModel):
    level: NoticeLevel
    message: str


class Notifier:
    """
    Queue of notices for the cashier.

    The UI shell drains it after every action and renders each notice as a
    toast or flash message.
    """

    def __init__(self):
        self._notices: List[Notice] = []

    def notify(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self._notices.append(notice)
        logger.debug(f"[NOTICE] {level.value}: {message}")
        return notice

    def success(self, message: str) -> Notice:
        return self.notify(NoticeLevel.SUCCESS, message)

    def info(self, message: str) -> Notice:
        return self.notify(NoticeLevel.INFO, message)

    def warning(self, message: str) -> Notice:
        return self.notify(NoticeLevel.WARNING, message)

    def drain(self) -> List[Notice]:
        notices, self._notices = self._notices, []
        return notices

    def __len__(self):
        return len(self._notices)
