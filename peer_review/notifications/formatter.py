"""
Telegram-friendly text for each notification template.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict

from peer_review.notifications.base import TemplateKind

logger = logging.getLogger(__name__)


def _format_deadline(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M UTC")
    return str(value)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class MessageFormatter:
    """Renders notification data as Markdown text"""

    def __init__(self):
        self._renderers: Dict[TemplateKind, Callable[[Dict[str, Any]], str]] = {
            TemplateKind.ASSIGNMENT_NOTIFICATION: self.format_assignment,
            TemplateKind.DEADLINE_WARNING: self.format_deadline_warning,
            TemplateKind.FINAL_REMINDER: self.format_final_reminder,
            TemplateKind.REFUND_NOTIFICATION: self.format_refund,
            TemplateKind.VERIFICATION_COMPLETE: self.format_verification_complete,
        }

    def render(self, template: TemplateKind, data: Dict[str, Any]) -> str:
        """Render ``data`` with the template's renderer."""
        return self._renderers[template](data)

    def format_assignment(self, data: Dict[str, Any]) -> str:
        count = data.get("assignment_count", 1)
        text = f"📝 *New review {'task' if count == 1 else 'tasks'}*\n\n"
        text += f"You have been assigned {_plural(count, 'submission')} to review.\n"
        text += f"⏰ Deadline: *{_format_deadline(data.get('deadline'))}*"
        if data.get("reassigned"):
            text += "\n\n_This assignment replaces one that was not completed in time._"
        return text

    def format_deadline_warning(self, data: Dict[str, Any]) -> str:
        count = data.get("assignment_count", 1)
        return (
            "⏳ *Review deadline approaching*\n\n"
            f"{_plural(count, 'review')} due within {data.get('hours_remaining', 24)} hours.\n"
            f"⏰ Earliest deadline: *{_format_deadline(data.get('deadline'))}*"
        )

    def format_final_reminder(self, data: Dict[str, Any]) -> str:
        count = data.get("assignment_count", 1)
        return (
            "🚨 *Final reminder*\n\n"
            f"{_plural(count, 'review')} expire in about {data.get('hours_remaining', 2)} hours.\n"
            f"⏰ Deadline: *{_format_deadline(data.get('deadline'))}*\n\n"
            "Unfinished reviews are reassigned and may disqualify your own entry."
        )

    def format_refund(self, data: Dict[str, Any]) -> str:
        return (
            "💳 *Peer verification refund*\n\n"
            f"Your verification request for *{data.get('submission_title', 'your submission')}* "
            f"received {data.get('completed_reviews', 0)} of {data.get('required_reviews', 0)} "
            "required reviews in time.\n"
            f"A refund of *{data.get('amount')} {data.get('currency', 'USD')}* has been issued."
        )

    def format_verification_complete(self, data: Dict[str, Any]) -> str:
        outcome = data.get("outcome", "")
        headline = {
            "REINSTATED": "✅ Your submission has been reinstated",
            "ELIMINATED_CONFIRMED": "❌ The elimination has been confirmed",
            "AI_DECISION_UPHELD": "⚖️ The original decision stands",
        }.get(outcome, "Peer verification finished")
        return (
            f"*{headline}*\n\n"
            f"Submission: *{data.get('submission_title', '')}*\n"
            f"Reinstate votes: {data.get('reinstate_votes', 0)} "
            f"({data.get('reinstate_percentage', 0)}%)\n"
            f"Eliminate votes: {data.get('eliminate_votes', 0)} "
            f"({data.get('eliminate_percentage', 0)}%)"
        )
