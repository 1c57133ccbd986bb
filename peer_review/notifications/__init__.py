"""
Notification delivery for reviewers and authors.
"""
from .base import Notifier, NotificationResult, TemplateKind
from .formatter import MessageFormatter
from .telegram_notifier import TelegramNotifier, create_bot

__all__ = [
    "Notifier",
    "NotificationResult",
    "TemplateKind",
    "MessageFormatter",
    "TelegramNotifier",
    "create_bot",
]
