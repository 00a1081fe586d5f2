"""
CPU scheduling simulator.

Computes execution timelines for FCFS, SJF, SRTF, Priority and Round Robin
and replays them one logical time unit at a time.
"""

from .algorithms import ALGORITHMS, run_algorithm, schedule
from .errors import InvalidProcessSet, NoTimelineAvailable, PlaybackMisuse, SchedulerError, UnknownPolicy
from .models import IDLE, PlaybackState, Process, ProcessState, ScheduleResult, TickSnapshot, TimelineBlock
from .playback import PlaybackController, derive_tick, find_block
from .session import SimulationSession

__all__ = [
    "ALGORITHMS",
    "IDLE",
    "InvalidProcessSet",
    "NoTimelineAvailable",
    "PlaybackController",
    "PlaybackMisuse",
    "PlaybackState",
    "Process",
    "ProcessState",
    "ScheduleResult",
    "SchedulerError",
    "SimulationSession",
    "TickSnapshot",
    "TimelineBlock",
    "UnknownPolicy",
    "derive_tick",
    "find_block",
    "run_algorithm",
    "schedule",
]
