"""
Tick-by-tick replay of a computed schedule.

The controller never schedules anything itself: each tick advances the
logical clock by one unit and reads the running process off the timeline.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Sequence

from .errors import NoTimelineAvailable, PlaybackError, PlaybackMisuse
from .models import (
    IDLE,
    PlaybackState,
    Process,
    ProcessSnapshot,
    ProcessState,
    ScheduleResult,
    TickSnapshot,
    TimelineBlock,
)
from .session import SimulationSession

logger = logging.getLogger(__name__)

Subscriber = Callable[[TickSnapshot], None]


def find_block(timeline: Sequence[TimelineBlock], t: int) -> Optional[TimelineBlock]:
    """
    Return the block covering the unit that ends at ``t``, i.e. the block
    with ``start < t <= end``.
    """
    for block in timeline:
        if block.start < t <= block.end:
            return block
    return None


def derive_tick(t: int, timeline: Sequence[TimelineBlock], processes: Sequence[Process]) -> TickSnapshot:
    """
    Update every process for clock value ``t`` and return the snapshot.

    The running process loses one unit of remaining time; everything else is
    classified from its arrival and remaining time alone.
    """
    block = find_block(timeline, t)
    running = block.occupant if block is not None else IDLE

    ready: List[str] = []
    for p in processes:
        if p.arrival_time > t:
            p.state = ProcessState.WAITING
        elif p.pid == running:
            p.state = ProcessState.RUNNING
            if p.remaining_time > 0:
                p.remaining_time -= 1
        elif p.remaining_time == 0:
            p.state = ProcessState.DONE
        else:
            p.state = ProcessState.READY
            ready.append(p.pid)

    return TickSnapshot(
        clock=t,
        running=running,
        processes=_snapshots(processes),
        ready_queue=tuple(ready),
    )


def _snapshots(processes: Sequence[Process]):
    return tuple(ProcessSnapshot(p.pid, p.state, p.remaining_time) for p in processes)


class PlaybackController:
    """
    State machine over IDLE, RUNNING, PAUSED and FINISHED driving one
    ``SimulationSession``.

    Every command and every tick runs under one lock, and subscribers are
    called while it is held. With a ``tick_interval`` the controller ticks
    itself from a ``threading.Timer``; without one the caller invokes
    ``tick()``.
    Rejected commands return False and leave the reason in ``last_error``.
    """

    def __init__(self, session: Optional[SimulationSession] = None, tick_interval: Optional[float] = None):
        if tick_interval is not None and tick_interval <= 0:
            raise ValueError(f"tick_interval must be positive (got {tick_interval})")
        self.session = session if session is not None else SimulationSession()
        self.tick_interval = tick_interval
        self.last_error: Optional[PlaybackError] = None
        self.last_snapshot: Optional[TickSnapshot] = None

        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._finished = threading.Event()
        self._subscribers: List[Subscriber] = []

    @property
    def state(self) -> PlaybackState:
        return self.session.state

    @property
    def clock(self) -> int:
        return self.session.clock

    @property
    def result(self) -> Optional[ScheduleResult]:
        return self.session.result

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Call ``callback`` with every tick snapshot. Returns an unsubscribe
        function.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # process set and schedule

    def run_simulation(self, policy: str, quantum: Optional[int] = None) -> ScheduleResult:
        with self._lock:
            # A rejected schedule leaves the current playback running.
            result = self.session.compute(policy, quantum)
            self._cancel_timer()
            self._reset_locked()
            return result

    def add_process(self, *args, **kwargs) -> Process:
        with self._lock:
            process = self.session.add_process(*args, **kwargs)
            self._cancel_timer()
            self._reset_locked()
            return process

    def load_processes(self, processes: List[Process]) -> None:
        with self._lock:
            self.session.load_processes(processes)
            self._cancel_timer()
            self._reset_locked()

    def load_sample(self) -> None:
        with self._lock:
            self._cancel_timer()
            self.session.load_sample()
            self._reset_locked()

    def clear_processes(self) -> None:
        with self._lock:
            self._cancel_timer()
            self.session.clear_processes()
            self._reset_locked()

    # playback commands

    def start(self) -> bool:
        with self._lock:
            if not self.session.has_timeline:
                return self._reject(NoTimelineAvailable("start requested before a schedule was computed"))
            if self.state is PlaybackState.RUNNING:
                return self._reject(PlaybackMisuse("start requested while already running"))
            if self.state is PlaybackState.FINISHED:
                return self._reject(PlaybackMisuse("playback has finished; reset before starting again"))

            resumed = self.state is PlaybackState.PAUSED
            self.session.state = PlaybackState.RUNNING
            self.last_error = None
            logger.info("Playback %s at t=%d", "resumed" if resumed else "started", self.clock)
            self._arm_timer()
            return True

    def pause(self) -> bool:
        with self._lock:
            if self.state is not PlaybackState.RUNNING:
                return self._reject(PlaybackMisuse(f"pause requested while {self.state.value}"))
            self._cancel_timer()
            self.session.state = PlaybackState.PAUSED
            self.last_error = None
            logger.info("Playback paused at t=%d", self.clock)
            return True

    def step(self) -> bool:
        with self._lock:
            if not self.session.has_timeline:
                return self._reject(NoTimelineAvailable("step requested before a schedule was computed"))
            if self.state is PlaybackState.RUNNING:
                return self._reject(PlaybackMisuse("step requested while running; pause first"))
            if self.state is PlaybackState.FINISHED:
                return self._reject(PlaybackMisuse("step requested after playback finished"))

            snapshot = self._advance_locked()
            if self.state is not PlaybackState.FINISHED:
                self.session.state = PlaybackState.PAUSED
            self.last_error = None
            self._publish(snapshot)
            return True

    def reset(self) -> bool:
        with self._lock:
            self._cancel_timer()
            self._reset_locked()
            logger.info("Playback reset")
            return True

    def tick(self) -> Optional[TickSnapshot]:
        """
        Advance one unit if running. Returns the snapshot, or None when the
        controller was not running.
        """
        with self._lock:
            snapshot = self._tick_locked()
            self._publish(snapshot)
            return snapshot

    def snapshot(self) -> TickSnapshot:
        """
        Current view of the session without advancing the clock.
        """
        with self._lock:
            processes = self.session.processes
            running = IDLE
            if self.state is not PlaybackState.FINISHED and self.last_snapshot is not None:
                running = self.last_snapshot.running
            return TickSnapshot(
                clock=self.clock,
                running=running,
                processes=_snapshots(processes),
                ready_queue=tuple(p.pid for p in processes if p.state is ProcessState.READY),
            )

    def wait_finished(self, timeout: Optional[float] = None) -> bool:
        return self._finished.wait(timeout)

    # internals; the *_locked helpers expect the lock to be held

    def _tick_locked(self) -> Optional[TickSnapshot]:
        if self.state is not PlaybackState.RUNNING:
            return None
        return self._advance_locked()

    def _advance_locked(self) -> Optional[TickSnapshot]:
        session = self.session
        makespan = session.makespan
        if session.clock >= makespan:
            self._finish_locked()
            return None

        session.clock += 1
        snapshot = derive_tick(session.clock, session.result.timeline, session.processes)
        self.last_snapshot = snapshot
        logger.debug("t=%d running=%s ready=%s", snapshot.clock, snapshot.running, list(snapshot.ready_queue))

        if session.clock >= makespan:
            self._finish_locked()
        return snapshot

    def _finish_locked(self) -> None:
        self._cancel_timer()
        self.session.state = PlaybackState.FINISHED
        for p in self.session.processes:
            p.remaining_time = 0
            p.state = ProcessState.DONE
        logger.info("Playback finished at t=%d", self.clock)

    def _reset_locked(self) -> None:
        self.session.restore()
        self.last_snapshot = None
        self._finished.clear()

    def _arm_timer(self) -> None:
        if self.tick_interval is None:
            return
        generation = self._generation
        timer = threading.Timer(self.tick_interval, self._on_timer, args=(generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        # Bumping the generation also voids a timer that already fired and is
        # waiting on the lock.
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._publish(self._tick_locked())
            # Re-arm only after delivery so subscribers see ticks in order.
            if generation == self._generation and self.state is PlaybackState.RUNNING:
                self._arm_timer()

    def _reject(self, error: PlaybackError) -> bool:
        self.last_error = error
        logger.warning("Ignored playback command: %s", error)
        return False

    def _publish(self, snapshot: Optional[TickSnapshot]) -> None:
        # Called with the lock held, so a reset cannot slip in between a tick
        # and its delivery.
        if snapshot is not None:
            for callback in list(self._subscribers):
                callback(snapshot)
        # Waiters wake only after the final tick has been delivered.
        if self.state is PlaybackState.FINISHED:
            self._finished.set()
