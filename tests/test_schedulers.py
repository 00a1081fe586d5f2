import pytest

from scheduler_sim.algorithms import (
    run_algorithm,
    schedule,
    schedule_fcfs,
    schedule_priority,
    schedule_rr,
    schedule_sjf,
    schedule_srtf,
)
from scheduler_sim.errors import InvalidProcessSet, UnknownPolicy
from scheduler_sim.models import IDLE, Process


def _procs():
    return [
        Process("P1", arrival_time=0, burst_time=8, priority=2),
        Process("P2", arrival_time=1, burst_time=4, priority=1),
        Process("P3", arrival_time=2, burst_time=9, priority=3),
    ]


def _blocks(result):
    return [(b.occupant, b.start, b.end) for b in result.timeline]


def _waits(result):
    return {m.pid: m.waiting_time for m in result.processes}


def _assert_well_formed(result, procs):
    timeline = result.timeline
    assert timeline[0].start == 0
    for prev, cur in zip(timeline, timeline[1:]):
        assert prev.end == cur.start
    assert all(b.start < b.end for b in timeline)

    for p in procs:
        ran = sum(b.duration for b in timeline if b.occupant == p.pid)
        assert ran == p.burst_time

    for m in result.processes:
        assert m.waiting_time >= 0
        assert m.turnaround_time == m.waiting_time + m.burst_time
        assert m.turnaround_time == m.completion_time - m.arrival_time

    assert result.makespan == max(m.completion_time for m in result.processes)


def test_fcfs_order():
    res = schedule_fcfs(_procs())
    assert _blocks(res) == [("P1", 0, 8), ("P2", 8, 12), ("P3", 12, 21)]
    assert _waits(res) == {"P1": 0, "P2": 7, "P3": 10}
    assert round(res.mean_waiting_time, 2) == 5.67
    assert res.mean_turnaround_time == pytest.approx((8 + 11 + 19) / 3)


def test_fcfs_equal_arrivals_keep_insertion_order():
    procs = [
        Process("B", arrival_time=3, burst_time=1),
        Process("A", arrival_time=3, burst_time=1),
        Process("C", arrival_time=0, burst_time=1),
    ]
    res = schedule_fcfs(procs)
    assert _blocks(res) == [("C", 0, 1), (IDLE, 1, 3), ("B", 3, 4), ("A", 4, 5)]


def test_idle_gap_before_late_arrival():
    procs = [
        Process("P1", arrival_time=0, burst_time=2),
        Process("P2", arrival_time=5, burst_time=3),
    ]
    expected = [("P1", 0, 2), (IDLE, 2, 5), ("P2", 5, 8)]
    assert _blocks(schedule_fcfs(procs)) == expected
    assert _blocks(schedule_sjf(procs)) == expected
    assert _blocks(schedule_priority(procs)) == expected
    assert _blocks(schedule_srtf(procs)) == expected
    assert _blocks(schedule_rr(procs, quantum=2)) == [("P1", 0, 2), (IDLE, 2, 5), ("P2", 5, 7), ("P2", 7, 8)]


def test_leading_idle_block_when_nothing_arrives_at_zero():
    procs = [Process("P1", arrival_time=3, burst_time=2)]
    res = schedule_sjf(procs)
    assert _blocks(res) == [(IDLE, 0, 3), ("P1", 3, 5)]
    assert res.system.cpu_busy_time == 2
    assert res.system.cpu_utilization == pytest.approx(0.4)


def test_sjf_order():
    res = schedule_sjf(_procs())
    assert _blocks(res) == [("P1", 0, 8), ("P2", 8, 12), ("P3", 12, 21)]


def test_sjf_ties_prefer_earlier_arrival_then_insertion_order():
    procs = [
        Process("P0", arrival_time=0, burst_time=3),
        Process("X", arrival_time=2, burst_time=3),
        Process("Y", arrival_time=1, burst_time=3),
        Process("Z", arrival_time=1, burst_time=3),
    ]
    res = schedule_sjf(procs)
    assert [b.occupant for b in res.timeline] == ["P0", "Y", "Z", "X"]


def test_priority_differs_from_sjf():
    procs = [
        Process("P1", arrival_time=0, burst_time=4, priority=3),
        Process("P2", arrival_time=1, burst_time=3, priority=2),
        Process("P3", arrival_time=2, burst_time=5, priority=1),
    ]
    assert _blocks(schedule_priority(procs)) == [("P1", 0, 4), ("P3", 4, 9), ("P2", 9, 12)]
    assert _blocks(schedule_sjf(procs)) == [("P1", 0, 4), ("P2", 4, 7), ("P3", 7, 12)]


def test_priority_ties_prefer_earlier_arrival_then_insertion_order():
    procs = [
        Process("P0", arrival_time=0, burst_time=3, priority=1),
        Process("X", arrival_time=2, burst_time=1, priority=2),
        Process("Y", arrival_time=1, burst_time=1, priority=2),
        Process("Z", arrival_time=1, burst_time=1, priority=2),
    ]
    assert [b.occupant for b in schedule_priority(procs).timeline] == ["P0", "Y", "Z", "X"]

def test_priority_missing_value_runs_last():
    procs = [
        Process("P0", arrival_time=0, burst_time=1, priority=1),
        Process("A", arrival_time=0, burst_time=1, priority=None),
        Process("B", arrival_time=0, burst_time=1, priority=9),
    ]
    assert [b.occupant for b in schedule_priority(procs).timeline] == ["P0", "B", "A"]


def test_srtf_preempts_on_shorter_arrival():
    res = schedule_srtf(_procs())
    assert _blocks(res) == [("P1", 0, 1), ("P2", 1, 5), ("P1", 5, 12), ("P3", 12, 21)]
    assert _waits(res) == {"P1": 4, "P2": 0, "P3": 10}
    assert res.makespan == 21
    assert res.metrics_for("P1").response_time == 0


def test_srtf_coalesces_consecutive_ticks():
    procs = [Process("P1", arrival_time=0, burst_time=5), Process("P2", arrival_time=1, burst_time=9)]
    res = schedule_srtf(procs)
    assert _blocks(res) == [("P1", 0, 5), ("P2", 5, 14)]


def test_srtf_ties_prefer_earlier_arrival_then_insertion_order():
    procs = [
        Process("X", arrival_time=1, burst_time=3),
        Process("A", arrival_time=0, burst_time=4),
    ]
    assert _blocks(schedule_srtf(procs)) == [("A", 0, 4), ("X", 4, 7)]

    same_arrival = [Process("C", arrival_time=0, burst_time=2), Process("B", arrival_time=0, burst_time=2)]
    assert _blocks(schedule_srtf(same_arrival)) == [("C", 0, 2), ("B", 2, 4)]
    assert _blocks(schedule_srtf(same_arrival[::-1])) == [("B", 0, 2), ("C", 2, 4)]


def test_rr_quantum_2_requeues_arrivals_before_incumbent():
    res = schedule_rr(_procs(), quantum=2)
    assert _blocks(res) == [
        ("P1", 0, 2),
        ("P2", 2, 4),
        ("P3", 4, 6),
        ("P1", 6, 8),
        ("P2", 8, 10),
        ("P3", 10, 12),
        ("P1", 12, 14),
        ("P3", 14, 16),
        ("P1", 16, 18),
        ("P3", 18, 20),
        ("P3", 20, 21),
    ]
    assert {m.pid: m.completion_time for m in res.processes} == {"P1": 18, "P2": 10, "P3": 21}
    assert _waits(res) == {"P1": 10, "P2": 5, "P3": 10}
    assert res.system.cpu_busy_time == sum(p.burst_time for p in _procs())


def test_rr_same_time_arrivals_keep_insertion_order():
    procs = [Process("B", arrival_time=0, burst_time=3), Process("A", arrival_time=0, burst_time=3)]
    assert _blocks(schedule_rr(procs, quantum=2)) == [("B", 0, 2), ("A", 2, 4), ("B", 4, 5), ("A", 5, 6)]

    procs = [
        Process("P0", arrival_time=0, burst_time=2),
        Process("Y", arrival_time=1, burst_time=1),
        Process("X", arrival_time=1, burst_time=1),
    ]
    assert _blocks(schedule_rr(procs, quantum=2)) == [("P0", 0, 2), ("Y", 2, 3), ("X", 3, 4)]

def test_rr_wait_between_turns_is_bounded():
    procs = [Process(f"P{i}", arrival_time=0, burst_time=7) for i in range(4)]
    quantum = 3
    res = schedule_rr(procs, quantum=quantum)
    last_end = {}
    for block in res.timeline:
        if block.occupant in last_end:
            assert block.start - last_end[block.occupant] <= (len(procs) - 1) * quantum
        last_end[block.occupant] = block.end


@pytest.mark.parametrize("quantum", [None, 0, -2])
def test_rr_rejects_bad_quantum(quantum):
    with pytest.raises(InvalidProcessSet):
        schedule_rr(_procs(), quantum=quantum)


@pytest.mark.parametrize("policy", ["fcfs", "sjf", "srtf", "priority", "rr"])
def test_every_policy_produces_a_well_formed_schedule(policy):
    procs = _procs() + [
        Process("P4", arrival_time=30, burst_time=3, priority=0),
        Process("P5", arrival_time=31, burst_time=1, priority=5),
    ]
    res = run_algorithm(policy, procs, quantum=3)
    _assert_well_formed(res, procs)
    assert res.makespan >= max(p.arrival_time + p.burst_time for p in procs)
    assert [m.pid for m in res.processes] == [p.pid for p in procs]


@pytest.mark.parametrize("policy", ["fcfs", "sjf", "srtf", "priority", "rr"])
def test_scheduler_does_not_mutate_input(policy):
    procs = _procs()
    procs[0].remaining_time = 3
    before = [(p.pid, p.arrival_time, p.burst_time, p.priority, p.remaining_time, p.state) for p in procs]
    first = run_algorithm(policy, procs, quantum=2)
    second = run_algorithm(policy, procs, quantum=2)
    after = [(p.pid, p.arrival_time, p.burst_time, p.priority, p.remaining_time, p.state) for p in procs]
    assert before == after
    assert first.timeline == second.timeline


def test_schedule_returns_timeline_and_metrics():
    timeline, metrics = schedule(_procs(), "round_robin", quantum=4)
    assert timeline[0].occupant == "P1"
    assert timeline[0].end == 4
    assert len(metrics) == 3


def test_run_algorithm_ignores_quantum_for_non_preemptive_policies():
    assert run_algorithm("FCFS", _procs(), quantum=2).quantum is None


@pytest.mark.parametrize(
    "procs",
    [
        [],
        [Process("A", 0, 3), Process("A", 1, 2)],
        [Process("A", 0, 0)],
        [Process("A", -1, 2)],
        [Process("IDLE", 0, 2)],
    ],
)
def test_invalid_process_sets_are_rejected(procs):
    with pytest.raises(InvalidProcessSet):
        schedule_fcfs(procs)


def test_unknown_policy():
    with pytest.raises(UnknownPolicy):
        run_algorithm("mlfq", _procs())
