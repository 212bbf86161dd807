"""Background consumers of appointment events."""

from .base import BaseAgent
from .audit import AuditAgent

__all__ = ["BaseAgent", "AuditAgent"]
