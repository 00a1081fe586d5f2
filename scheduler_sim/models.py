from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

# Occupant of a timeline block during which no process is eligible to run.
IDLE = "IDLE"


class ProcessState(str, Enum):
    WAITING = "WAITING"
    READY = "READY"
    RUNNING = "RUNNING"
    DONE = "DONE"


class PlaybackState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"


@dataclass
class Process:
    """
    One schedulable unit.

    ``remaining_time`` and ``state`` belong to playback; the schedulers only
    read the static fields and work on their own copies.
    """

    pid: str
    arrival_time: int
    burst_time: int
    priority: Optional[int] = None
    remaining_time: int = field(init=False, compare=False)
    state: ProcessState = field(init=False, compare=False)

    def __post_init__(self) -> None:
        self.restore()

    def restore(self) -> None:
        self.remaining_time = self.burst_time
        self.state = ProcessState.WAITING


@dataclass(frozen=True)
class TimelineBlock:
    """
    One contiguous CPU allocation over the half-open interval [start, end).
    """

    occupant: str
    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def is_idle(self) -> bool:
        return self.occupant == IDLE


@dataclass
class ProcessMetrics:
    pid: str
    arrival_time: int
    burst_time: int
    start_time: int
    completion_time: int
    waiting_time: int
    turnaround_time: int
    response_time: int
    priority: Optional[int] = None


@dataclass
class SystemMetrics:
    cpu_busy_time: int
    makespan: int
    throughput: float
    cpu_utilization: float


@dataclass
class ScheduleResult:
    algorithm: str
    quantum: Optional[int]
    processes: List[ProcessMetrics] = field(default_factory=list)
    timeline: List[TimelineBlock] = field(default_factory=list)
    system: Optional[SystemMetrics] = None

    @property
    def makespan(self) -> int:
        return self.timeline[-1].end if self.timeline else 0

    @property
    def mean_waiting_time(self) -> float:
        if not self.processes:
            return 0.0
        return sum(p.waiting_time for p in self.processes) / len(self.processes)

    @property
    def mean_turnaround_time(self) -> float:
        if not self.processes:
            return 0.0
        return sum(p.turnaround_time for p in self.processes) / len(self.processes)

    def metrics_for(self, pid: str) -> ProcessMetrics:
        for m in self.processes:
            if m.pid == pid:
                return m
        raise KeyError(pid)


@dataclass(frozen=True)
class ProcessSnapshot:
    pid: str
    state: ProcessState
    remaining_time: int


@dataclass(frozen=True)
class TickSnapshot:
    """
    Everything a renderer needs for one simulated time unit.
    """

    clock: int
    running: str
    processes: Tuple[ProcessSnapshot, ...]
    ready_queue: Tuple[str, ...]

    def state_of(self, pid: str) -> ProcessSnapshot:
        for snap in self.processes:
            if snap.pid == pid:
                return snap
        raise KeyError(pid)
