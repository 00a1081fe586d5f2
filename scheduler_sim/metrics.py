from __future__ import annotations

from typing import List

from .models import ProcessMetrics, ScheduleResult, SystemMetrics


def compute_system_metrics(result: ScheduleResult) -> SystemMetrics:
    """
    Compute throughput and CPU utilization from the populated per-process
    metrics and the timeline. Idle blocks count towards the makespan only.
    """
    if not result.processes:
        system = SystemMetrics(cpu_busy_time=0, makespan=0, throughput=0.0, cpu_utilization=0.0)
        result.system = system
        return system

    makespan = result.makespan
    cpu_busy_time = sum(block.duration for block in result.timeline if not block.is_idle)

    throughput = len(result.processes) / makespan if makespan > 0 else 0.0
    cpu_utilization = cpu_busy_time / makespan if makespan > 0 else 0.0

    system = SystemMetrics(
        cpu_busy_time=cpu_busy_time,
        makespan=makespan,
        throughput=throughput,
        cpu_utilization=cpu_utilization,
    )
    result.system = system
    return system


def summarize_process_metrics(processes: List[ProcessMetrics]) -> dict:
    """
    Return averages of the key per-process metrics at full precision;
    rounding is left to whoever displays them.
    """
    if not processes:
        return {"avg_waiting": 0.0, "avg_turnaround": 0.0, "avg_response": 0.0}

    n = len(processes)
    return {
        "avg_waiting": sum(p.waiting_time for p in processes) / n,
        "avg_turnaround": sum(p.turnaround_time for p in processes) / n,
        "avg_response": sum(p.response_time for p in processes) / n,
    }
