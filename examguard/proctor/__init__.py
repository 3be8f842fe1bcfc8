"""
ExamGuard Proctoring Module

Signal detectors, the proctor event pipeline and the live broadcast hub.
"""

from .broadcast import BroadcastHub, ClientType, Observer, ObserverRegistry
from .event_logger import ProctorEventLogger
from .session import ProctorSession, ProctorSessionRegistry, SAMPLE_ROUTES

__all__ = [
    "BroadcastHub",
    "ClientType",
    "Observer",
    "ObserverRegistry",
    "ProctorEventLogger",
    "ProctorSession",
    "ProctorSessionRegistry",
    "SAMPLE_ROUTES",
]
