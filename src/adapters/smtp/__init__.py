"""Notifier adapters - Email delivery implementations."""

from .console import ConsoleNotifier
from .messages import EmailContent, MessageBuilder
from .smtp import SmtpNotifier

__all__ = ["ConsoleNotifier", "EmailContent", "MessageBuilder", "SmtpNotifier"]
