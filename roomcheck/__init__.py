"""
RoomCheck

Dormitory room inspection service: time-window gating, photo metadata
forensics and vision-model scoring of submitted room photos.
"""

__version__ = "0.1.0"
