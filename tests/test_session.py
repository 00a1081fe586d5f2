import pytest

from scheduler_sim.config import Settings
from scheduler_sim.errors import InvalidProcessSet
from scheduler_sim.models import PlaybackState, Process, ProcessState
from scheduler_sim.session import SimulationSession


def test_add_process_fills_defaults_and_numbers_ids():
    session = SimulationSession()
    p = session.add_process()
    assert (p.pid, p.arrival_time, p.burst_time, p.priority) == ("P1", 0, 5, 1)
    assert session.add_process(arrival_time=3).pid == "P2"
    session.add_process("P7", burst_time=2)
    assert session.next_pid() == "P8"
    session.add_process("custom")
    assert session.next_pid() == "P9"


def test_defaults_come_from_settings():
    session = SimulationSession(settings=Settings(default_burst=2, default_priority=4))
    p = session.add_process()
    assert p.burst_time == 2
    assert p.priority == 4


def test_duplicate_pid_rejected():
    session = SimulationSession()
    session.add_process("A")
    with pytest.raises(InvalidProcessSet):
        session.add_process("A")
    assert [p.pid for p in session.processes] == ["A"]


def test_load_sample_sets_next_id():
    session = SimulationSession()
    session.load_sample()
    assert [p.pid for p in session.processes] == ["P1", "P2", "P3"]
    assert session.next_pid() == "P4"


def test_editing_the_process_set_discards_the_schedule():
    session = SimulationSession()
    session.load_sample()
    session.compute("fcfs")
    assert session.has_timeline
    session.add_process()
    assert session.result is None
    assert not session.has_timeline


def test_clear_processes_resets_counter():
    session = SimulationSession()
    session.load_sample()
    session.clear_processes()
    assert session.processes == []
    assert session.next_pid() == "P1"


def test_compute_uses_default_quantum_for_round_robin():
    session = SimulationSession(settings=Settings(quantum=3))
    session.load_sample()
    result = session.compute("rr")
    assert result.quantum == 3
    assert result.timeline[0].end == 3
    assert session.policy == "rr"


def test_failed_compute_keeps_previous_result():
    session = SimulationSession()
    session.load_sample()
    previous = session.compute("sjf")
    with pytest.raises(InvalidProcessSet):
        session.compute("rr", quantum=0)
    assert session.result is previous
    assert session.policy == "sjf"


def test_restore_rewinds_playback_state():
    session = SimulationSession()
    session.load_sample()
    session.compute("fcfs")
    session.clock = 5
    session.state = PlaybackState.PAUSED
    session.processes[0].remaining_time = 3
    session.processes[0].state = ProcessState.RUNNING
    session.restore()
    assert session.clock == 0
    assert session.state is PlaybackState.IDLE
    assert all(p.remaining_time == p.burst_time for p in session.processes)
    assert all(p.state is ProcessState.WAITING for p in session.processes)
    assert session.has_timeline


def test_load_with_duplicate_ids_keeps_current_set():
    session = SimulationSession()
    session.load_sample()
    previous = session.compute("fcfs")
    with pytest.raises(InvalidProcessSet):
        session.load_processes([Process("A", 0, 1), Process("A", 1, 1)])
    assert [p.pid for p in session.processes] == ["P1", "P2", "P3"]
    assert session.result is previous
    assert session.next_pid() == "P4"
