"""Persistence and external directory adapters."""

from .appointment_store import AppointmentStore
from .directory import AgentDirectory, HttpDirectory, StaticDirectory

__all__ = ["AppointmentStore", "AgentDirectory", "HttpDirectory", "StaticDirectory"]
