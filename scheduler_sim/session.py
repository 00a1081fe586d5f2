from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from .algorithms import normalize_policy, run_algorithm
from .config import DEFAULT_SETTINGS, Settings
from .errors import InvalidProcessSet
from .models import PlaybackState, Process, ScheduleResult
from .workload_io import sample_workload

logger = logging.getLogger(__name__)

_NUMBERED_PID = re.compile(r"^P(\d+)$")


@dataclass
class SimulationSession:
    """
    All state of one simulation run: the process set, the computed schedule,
    the logical clock and where playback stands.

    Not thread-safe on its own; ``PlaybackController`` serialises access.
    """

    settings: Settings = DEFAULT_SETTINGS
    processes: List[Process] = field(default_factory=list)
    policy: Optional[str] = None
    quantum: Optional[int] = None
    result: Optional[ScheduleResult] = None
    clock: int = 0
    state: PlaybackState = PlaybackState.IDLE
    _pid_counter: int = field(default=1, repr=False)

    @property
    def has_timeline(self) -> bool:
        return self.result is not None and bool(self.result.timeline)

    @property
    def makespan(self) -> int:
        return self.result.makespan if self.result is not None else 0

    def next_pid(self) -> str:
        return f"P{self._pid_counter}"

    def add_process(
        self,
        pid: Optional[str] = None,
        arrival_time: Optional[int] = None,
        burst_time: Optional[int] = None,
        priority: Optional[int] = None,
    ) -> Process:
        """
        Add a process, filling omitted fields from the settings. A blank
        ``pid`` takes the next ``P<n>`` id.
        """
        pid = (pid or "").strip() or self.next_pid()
        if any(p.pid == pid for p in self.processes):
            raise InvalidProcessSet(f"Duplicate process id '{pid}'")

        process = Process(
            pid=pid,
            arrival_time=self.settings.default_arrival if arrival_time is None else arrival_time,
            burst_time=self.settings.default_burst if burst_time is None else burst_time,
            priority=self.settings.default_priority if priority is None else priority,
        )
        self._append(process)
        self._invalidate()
        logger.debug("Added %s (next id %s)", process, self.next_pid())
        return process

    def load_processes(self, processes: List[Process]) -> None:
        """
        Replace the process set with copies of ``processes`` as given. On a
        duplicate id nothing changes.
        """
        seen = set()
        for p in processes:
            if p.pid in seen:
                raise InvalidProcessSet(f"Duplicate process id '{p.pid}'")
            seen.add(p.pid)

        self.clear_processes()
        for p in processes:
            self._append(Process(p.pid, p.arrival_time, p.burst_time, p.priority))
        self._invalidate()

    def load_sample(self) -> None:
        self.load_processes(sample_workload())

    def clear_processes(self) -> None:
        self.processes = []
        self._pid_counter = 1
        self._invalidate()

    def compute(self, policy: str, quantum: Optional[int] = None) -> ScheduleResult:
        """
        Schedule the current process set. The session is left untouched when
        the scheduler rejects the input.
        """
        key = normalize_policy(policy)
        if quantum is None and key == "rr":
            quantum = self.settings.quantum
        result = run_algorithm(key, self.processes, quantum=quantum)

        self.policy = key
        self.quantum = result.quantum
        self.result = result
        self.restore()
        return result

    def restore(self) -> None:
        """
        Rewind playback to clock 0 with every process WAITING and at full
        burst. The computed result is kept.
        """
        self.clock = 0
        self.state = PlaybackState.IDLE
        for p in self.processes:
            p.restore()

    def _append(self, process: Process) -> None:
        self.processes.append(process)
        match = _NUMBERED_PID.match(process.pid)
        if match:
            self._pid_counter = int(match.group(1)) + 1
        else:
            self._pid_counter += 1

    def _invalidate(self) -> None:
        self.result = None
        self.restore()
