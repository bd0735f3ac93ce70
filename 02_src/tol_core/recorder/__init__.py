"""ActivityRecorder module."""

from .recorder import CHANNEL_ID, RECORDED_KINDS, ActivityRecorder, IActivityRecorder

__all__ = ["CHANNEL_ID", "RECORDED_KINDS", "ActivityRecorder", "IActivityRecorder"]
