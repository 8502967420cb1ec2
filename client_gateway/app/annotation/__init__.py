"""
Request annotation for the client gateway.
"""

from .annotator import DeviceProfile, RequestAnnotator, resolve_timezone

__all__ = [
    "DeviceProfile",
    "RequestAnnotator",
    "resolve_timezone",
]
