from .event_recorder import EventRecorder, EVENT_KINDS

__all__ = ["EventRecorder", "EVENT_KINDS"]
