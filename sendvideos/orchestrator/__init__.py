"""Orchestrator package - wires the services into one send workflow."""
from .core import VideoSender
from .models import SendResult

__all__ = ["VideoSender", "SendResult"]
