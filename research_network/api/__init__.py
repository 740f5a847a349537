from .channel import LiveChannel, NullChannel, RecordingChannel

__all__ = ["LiveChannel", "NullChannel", "RecordingChannel"]
