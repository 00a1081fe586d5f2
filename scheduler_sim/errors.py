"""
Exceptions raised (or reported) by the scheduler and the playback controller.
"""


class SchedulerError(Exception):
    pass


class InvalidProcessSet(SchedulerError, ValueError):
    """
    The process set (or the quantum) cannot be scheduled: it is empty, holds
    a duplicate id, or carries an out-of-range value.
    """


class UnknownPolicy(SchedulerError, ValueError):
    pass


class PlaybackError(SchedulerError):
    """
    Base for conditions the playback controller reports instead of raising.
    """


class NoTimelineAvailable(PlaybackError):
    pass


class PlaybackMisuse(PlaybackError):
    pass
