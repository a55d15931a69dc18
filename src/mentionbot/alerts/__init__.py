"""Notifications (X replies, Telegram)."""

from mentionbot.alerts.formatter import NotificationFormatter
from mentionbot.alerts.manager import NotificationDispatcher, NotificationRecord
from mentionbot.alerts.notifier_protocol import Notifier
from mentionbot.alerts.telegram import TelegramNotifier
from mentionbot.alerts.twitter_reply import TwitterReplyNotifier

__all__ = [
    "Notifier",
    "NotificationDispatcher",
    "NotificationFormatter",
    "NotificationRecord",
    "TelegramNotifier",
    "TwitterReplyNotifier",
]
