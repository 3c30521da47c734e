"""
Discount Capture Module
"""
from .orchestrator import CaptureObserver, CaptureOrchestrator, CaptureResult, normalize_status

__all__ = [
    "CaptureObserver",
    "CaptureOrchestrator",
    "CaptureResult",
    "normalize_status",
]
