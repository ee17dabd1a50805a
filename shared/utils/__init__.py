from .common import clamp_duration, utc_millis

__all__ = ["utc_millis", "clamp_duration"]
