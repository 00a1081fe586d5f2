from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Sequence, Tuple

from .errors import InvalidProcessSet, UnknownPolicy
from .metrics import compute_system_metrics
from .models import IDLE, Process, ProcessMetrics, ScheduleResult, TimelineBlock

logger = logging.getLogger(__name__)


def validate_processes(processes: Sequence[Process]) -> None:
    """
    Reject anything the schedulers cannot handle before any work is done.
    """
    if not processes:
        raise InvalidProcessSet("Process set is empty")

    seen: set[str] = set()
    for p in processes:
        if p.pid == IDLE:
            raise InvalidProcessSet(f"'{IDLE}' is reserved and cannot be used as a process id")
        if p.pid in seen:
            raise InvalidProcessSet(f"Duplicate process id '{p.pid}'")
        seen.add(p.pid)

        if not isinstance(p.arrival_time, int) or not isinstance(p.burst_time, int):
            raise InvalidProcessSet(f"Process '{p.pid}' must have integer arrival and burst times")
        if p.arrival_time < 0:
            raise InvalidProcessSet(f"Process '{p.pid}' has negative arrival time {p.arrival_time}")
        if p.burst_time < 1:
            raise InvalidProcessSet(f"Process '{p.pid}' needs a burst time of at least 1 (got {p.burst_time})")


def _priority_value(p: Process) -> float:
    # Missing priority ranks after every real one.
    return p.priority if p.priority is not None else float("inf")


def _finalize(
    processes: Sequence[Process],
    first_run: Dict[str, int],
    completion: Dict[str, int],
) -> List[ProcessMetrics]:
    metrics: List[ProcessMetrics] = []
    for p in processes:
        completion_time = completion[p.pid]
        turnaround_time = completion_time - p.arrival_time
        metrics.append(
            ProcessMetrics(
                pid=p.pid,
                arrival_time=p.arrival_time,
                burst_time=p.burst_time,
                start_time=first_run[p.pid],
                completion_time=completion_time,
                waiting_time=turnaround_time - p.burst_time,
                turnaround_time=turnaround_time,
                response_time=first_run[p.pid] - p.arrival_time,
                priority=p.priority,
            )
        )
    return metrics


def _build_result(
    algorithm: str,
    quantum: Optional[int],
    processes: Sequence[Process],
    timeline: List[TimelineBlock],
    first_run: Dict[str, int],
    completion: Dict[str, int],
) -> ScheduleResult:
    result = ScheduleResult(
        algorithm=algorithm,
        quantum=quantum,
        processes=_finalize(processes, first_run, completion),
        timeline=timeline,
    )
    compute_system_metrics(result)
    logger.info(
        "%s scheduled %d processes: makespan=%d avg_wait=%.2f",
        algorithm,
        len(processes),
        result.makespan,
        result.mean_waiting_time,
    )
    return result


def schedule_fcfs(processes: List[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    First-Come First-Serve (non-preemptive).
    """
    validate_processes(processes)
    # sorted() is stable, so equal arrivals keep insertion order.
    processes_sorted = sorted(processes, key=lambda p: p.arrival_time)

    time = 0
    timeline: List[TimelineBlock] = []
    first_run: Dict[str, int] = {}
    completion: Dict[str, int] = {}

    for p in processes_sorted:
        if time < p.arrival_time:
            timeline.append(TimelineBlock(IDLE, time, p.arrival_time))
            time = p.arrival_time

        timeline.append(TimelineBlock(p.pid, time, time + p.burst_time))
        first_run[p.pid] = time
        time += p.burst_time
        completion[p.pid] = time

    return _build_result("FCFS", quantum, processes, timeline, first_run, completion)


def _schedule_non_preemptive(
    name: str,
    processes: List[Process],
    quantum: Optional[int],
    key: Callable[[Process], float],
) -> ScheduleResult:
    """
    Shared loop for SJF and Priority: at each decision point run the
    arrived process with the smallest ``key`` to completion.

    Ties fall back to earlier arrival, then insertion order.
    """
    validate_processes(processes)
    order = {p.pid: idx for idx, p in enumerate(processes)}

    time = 0
    timeline: List[TimelineBlock] = []
    first_run: Dict[str, int] = {}
    completion: Dict[str, int] = {}

    while len(completion) < len(processes):
        ready = [p for p in processes if p.arrival_time <= time and p.pid not in completion]

        if not ready:
            next_arrival = min(p.arrival_time for p in processes if p.pid not in completion)
            timeline.append(TimelineBlock(IDLE, time, next_arrival))
            time = next_arrival
            continue

        p = min(ready, key=lambda x: (key(x), x.arrival_time, order[x.pid]))
        logger.debug("%s t=%d picks %s from %s", name, time, p.pid, [r.pid for r in ready])

        timeline.append(TimelineBlock(p.pid, time, time + p.burst_time))
        first_run[p.pid] = time
        time += p.burst_time
        completion[p.pid] = time

    return _build_result(name, quantum, processes, timeline, first_run, completion)


def schedule_sjf(processes: List[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    Shortest Job First (non-preemptive).
    """
    return _schedule_non_preemptive("SJF", processes, quantum, key=lambda p: p.burst_time)


def schedule_priority(processes: List[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    Static Priority scheduling (non-preemptive).

    Lower numeric priority value means higher priority.
    """
    return _schedule_non_preemptive("Priority", processes, quantum, key=_priority_value)


def _extend_or_append(timeline: List[TimelineBlock], occupant: str, start: int, end: int) -> None:
    """
    Append ``[start, end)`` for ``occupant``, growing the last block instead
    when it belongs to the same occupant and ends exactly at ``start``.
    """
    if timeline and timeline[-1].occupant == occupant and timeline[-1].end == start:
        timeline[-1] = TimelineBlock(occupant, timeline[-1].start, end)
    else:
        timeline.append(TimelineBlock(occupant, start, end))


def schedule_srtf(processes: List[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    Shortest Remaining Time First (preemptive SJF).

    Advances one tick at a time so a newly arrived shorter job wins the very
    next tick. Consecutive ticks of one process coalesce into one block.
    """
    validate_processes(processes)
    order = {p.pid: idx for idx, p in enumerate(processes)}
    remaining = {p.pid: p.burst_time for p in processes}

    time = 0
    timeline: List[TimelineBlock] = []
    first_run: Dict[str, int] = {}
    completion: Dict[str, int] = {}

    while len(completion) < len(processes):
        ready = [p for p in processes if p.arrival_time <= time and remaining[p.pid] > 0]

        if not ready:
            next_arrival = min(p.arrival_time for p in processes if remaining[p.pid] > 0)
            _extend_or_append(timeline, IDLE, time, next_arrival)
            time = next_arrival
            continue

        current = min(ready, key=lambda p: (remaining[p.pid], p.arrival_time, order[p.pid]))
        previous = timeline[-1].occupant if timeline else IDLE
        if previous not in (IDLE, current.pid) and remaining[previous] > 0:
            logger.debug("SRTF t=%d: %s preempts %s", time, current.pid, timeline[-1].occupant)

        first_run.setdefault(current.pid, time)
        _extend_or_append(timeline, current.pid, time, time + 1)
        time += 1
        remaining[current.pid] -= 1

        if remaining[current.pid] == 0:
            completion[current.pid] = time

    return _build_result("SRTF", quantum, processes, timeline, first_run, completion)


def schedule_rr(processes: List[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    Round Robin scheduling with a fixed time quantum.

    Processes that arrive while a slice runs are queued ahead of the process
    that was just preempted.
    """
    if quantum is None or isinstance(quantum, bool) or not isinstance(quantum, int) or quantum <= 0:
        raise InvalidProcessSet(f"Round Robin requires a positive integer quantum (got {quantum!r})")
    validate_processes(processes)

    remaining = {p.pid: p.burst_time for p in processes}
    arrivals = sorted(processes, key=lambda p: p.arrival_time)
    next_idx = 0

    time = 0
    timeline: List[TimelineBlock] = []
    first_run: Dict[str, int] = {}
    completion: Dict[str, int] = {}
    ready: Deque[Process] = deque()

    def enqueue_arrivals(current_time: int) -> None:
        nonlocal next_idx
        while next_idx < len(arrivals) and arrivals[next_idx].arrival_time <= current_time:
            ready.append(arrivals[next_idx])
            next_idx += 1

    enqueue_arrivals(time)

    while len(completion) < len(processes):
        if not ready:
            next_arrival = arrivals[next_idx].arrival_time
            timeline.append(TimelineBlock(IDLE, time, next_arrival))
            time = next_arrival
            enqueue_arrivals(time)
            continue

        p = ready.popleft()
        run_time = min(quantum, remaining[p.pid])
        first_run.setdefault(p.pid, time)
        timeline.append(TimelineBlock(p.pid, time, time + run_time))

        time += run_time
        remaining[p.pid] -= run_time

        enqueue_arrivals(time)

        if remaining[p.pid] > 0:
            ready.append(p)
        else:
            completion[p.pid] = time

        logger.debug("RR t=%d ran %s for %d, queue=%s", time, p.pid, run_time, [r.pid for r in ready])

    return _build_result("Round Robin", quantum, processes, timeline, first_run, completion)


ALGORITHMS: Dict[str, Callable[..., ScheduleResult]] = {
    "fcfs": schedule_fcfs,
    "sjf": schedule_sjf,
    "srtf": schedule_srtf,
    "priority": schedule_priority,
    "rr": schedule_rr,
}

_ALIASES = {
    "round_robin": "rr",
    "roundrobin": "rr",
}

# Policies that consume a quantum.
QUANTUM_POLICIES = {"rr"}


def normalize_policy(name: str) -> str:
    key = str(name).strip().lower().replace("-", "_")
    key = _ALIASES.get(key, key)
    if key not in ALGORITHMS:
        raise UnknownPolicy(f"Unknown scheduling policy '{name}' (choose from {', '.join(ALGORITHMS)})")
    return key


def run_algorithm(name: str, processes: List[Process], quantum: Optional[int] = None) -> ScheduleResult:
    """
    Dispatch to the requested algorithm. The quantum is only passed on to
    policies that use it.
    """
    key = normalize_policy(name)
    func = ALGORITHMS[key]
    return func(list(processes), quantum=quantum if key in QUANTUM_POLICIES else None)


def schedule(
    processes: Sequence[Process], policy: str, quantum: Optional[int] = None
) -> Tuple[List[TimelineBlock], List[ProcessMetrics]]:
    """
    Return the ``(timeline, metrics)`` pair for ``processes`` under ``policy``.
    """
    result = run_algorithm(policy, list(processes), quantum=quantum)
    return result.timeline, result.processes
