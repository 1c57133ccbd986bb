"""
Notifier contract used by the assignment and lifecycle services.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class TemplateKind(Enum):
    """Message templates the engine can ask a notifier to deliver."""
    ASSIGNMENT_NOTIFICATION = "assignment-notification"
    DEADLINE_WARNING = "deadline-warning"
    FINAL_REMINDER = "final-reminder"
    REFUND_NOTIFICATION = "refund-notification"
    VERIFICATION_COMPLETE = "verification-complete"


@dataclass
class NotificationResult:
    """Outcome of a single send."""
    success: bool
    error: Optional[str] = None


class Notifier(ABC):
    """Delivers a templated message to an address."""

    @abstractmethod
    async def send(self, address: Any, template: TemplateKind, data: Dict[str, Any]) -> NotificationResult:
        """
        Send ``template`` rendered with ``data`` to ``address``.

        Delivery problems are reported through the returned result, not raised.
        """
