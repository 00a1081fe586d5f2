from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .algorithms import ALGORITHMS, QUANTUM_POLICIES, normalize_policy, run_algorithm
from .config import DEFAULT_SETTINGS, Settings
from .errors import SchedulerError
from .metrics import summarize_process_metrics
from .models import IDLE, PlaybackState, Process, ProcessState, ScheduleResult, TickSnapshot
from .playback import PlaybackController
from .session import SimulationSession
from .workload_io import load_workload, sample_workload

logger = logging.getLogger(__name__)

_STATE_STYLES = {
    ProcessState.WAITING: "dim",
    ProcessState.READY: "cyan",
    ProcessState.RUNNING: "bold green",
    ProcessState.DONE: "bright_black",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scheduler-sim",
        description="CPU scheduling simulator (FCFS, SJF, SRTF, Priority, RR) with tick-by-tick playback.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)
    policies = ", ".join(ALGORITHMS)

    run_parser = subparsers.add_parser("run", help="Schedule a workload and print timeline and metrics.")
    run_parser.add_argument("--algorithm", "-a", required=True, help=f"Policy to use ({policies}).")
    run_parser.add_argument(
        "--workload",
        "-w",
        default=None,
        help="Path to JSON or CSV workload file (default: built-in sample).",
    )
    run_parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=None,
        help=f"Time quantum for round robin (default: {DEFAULT_SETTINGS.quantum}).",
    )

    compare_parser = subparsers.add_parser(
        "compare",
        help="Run several policies on the same workload and compare average metrics.",
    )
    compare_parser.add_argument("--workload", "-w", default=None, help="Path to JSON or CSV workload file.")
    compare_parser.add_argument(
        "--algorithms",
        "-a",
        nargs="+",
        default=list(ALGORITHMS),
        help=f"Policies to compare (default: {' '.join(ALGORITHMS)}).",
    )
    compare_parser.add_argument("--quantum", "-q", type=int, default=None, help="Time quantum for round robin.")

    play_parser = subparsers.add_parser("play", help="Replay a computed schedule one time unit at a time.")
    play_parser.add_argument("--algorithm", "-a", required=True, help=f"Policy to use ({policies}).")
    play_parser.add_argument("--workload", "-w", default=None, help="Path to JSON or CSV workload file.")
    play_parser.add_argument("--quantum", "-q", type=int, default=None, help="Time quantum for round robin.")
    play_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help=f"Seconds between ticks (default: {DEFAULT_SETTINGS.tick_interval}).",
    )
    play_parser.add_argument(
        "--manual",
        action="store_true",
        help="Advance one tick per Enter instead of running on a timer.",
    )

    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_processes(workload: Optional[str]) -> List[Process]:
    if workload is None:
        return sample_workload()
    return load_workload(Path(workload))


def _print_result(result: ScheduleResult, console: Console) -> None:
    console.print(f"[bold]Algorithm:[/bold] {result.algorithm}")
    if result.quantum is not None:
        console.print(f"[bold]Quantum:[/bold] {result.quantum}")
    console.print()

    timeline_table = Table(title="Timeline", box=box.SIMPLE_HEAVY)
    timeline_table.add_column("Occupant", justify="center")
    timeline_table.add_column("Start", justify="right")
    timeline_table.add_column("End", justify="right")
    for block in result.timeline:
        occupant = f"[dim]{IDLE}[/dim]" if block.is_idle else block.occupant
        timeline_table.add_row(occupant, str(block.start), str(block.end))
    console.print(timeline_table)

    headers = [
        "PID",
        "Arrive",
        "Burst",
        "Start",
        "Complete",
        "Wait",
        "Turnaround",
        "Response",
        "Priority",
    ]

    proc_table = Table(title="Per-process metrics", box=box.SIMPLE_HEAVY)
    for h in headers:
        justify = "center" if h in {"PID", "Priority"} else "right"
        proc_table.add_column(h, justify=justify)

    for p in result.processes:
        proc_table.add_row(
            p.pid,
            str(p.arrival_time),
            str(p.burst_time),
            str(p.start_time),
            str(p.completion_time),
            str(p.waiting_time),
            str(p.turnaround_time),
            str(p.response_time),
            "" if p.priority is None else str(p.priority),
        )
    console.print(proc_table)

    summary = summarize_process_metrics(result.processes)
    sys_table = Table(title="System metrics", box=box.SIMPLE_HEAVY)
    sys_table.add_column("Metric")
    sys_table.add_column("Value", justify="right")
    sys_table.add_row("Avg waiting", f"{summary['avg_waiting']:.2f}")
    sys_table.add_row("Avg turnaround", f"{summary['avg_turnaround']:.2f}")
    sys_table.add_row("Avg response", f"{summary['avg_response']:.2f}")
    if result.system:
        sys = result.system
        sys_table.add_row("Makespan", str(sys.makespan))
        sys_table.add_row("Throughput (proc/time)", f"{sys.throughput:.3f}")
        sys_table.add_row("CPU utilization", f"{sys.cpu_utilization*100:.1f}%")
    console.print(sys_table)


def _run_compare(processes: List[Process], algorithms: List[str], quantum: int, console: Console) -> None:
    summary_table = Table(title="Algorithm comparison", box=box.SIMPLE_HEAVY)
    summary_table.add_column("Algorithm")
    summary_table.add_column("Quantum", justify="right")
    summary_table.add_column("Avg waiting", justify="right")
    summary_table.add_column("Avg turnaround", justify="right")
    summary_table.add_column("Avg response", justify="right")
    summary_table.add_column("Makespan", justify="right")

    for alg in algorithms:
        key = normalize_policy(alg)
        q = quantum if key in QUANTUM_POLICIES else None
        result = run_algorithm(key, processes, quantum=q)
        summary = summarize_process_metrics(result.processes)
        summary_table.add_row(
            result.algorithm,
            "" if result.quantum is None else str(result.quantum),
            f"{summary['avg_waiting']:.2f}",
            f"{summary['avg_turnaround']:.2f}",
            f"{summary['avg_response']:.2f}",
            str(result.makespan),
        )

    console.print(summary_table)


def _format_tick(snapshot: TickSnapshot) -> str:
    running = f"[dim]{IDLE}[/dim]" if snapshot.running == IDLE else f"[bold green]{escape(snapshot.running)}[/bold green]"
    states = " ".join(
        f"[{_STATE_STYLES[p.state]}]{escape(p.pid)}:{p.remaining_time}[/{_STATE_STYLES[p.state]}]"
        for p in snapshot.processes
    )
    ready = escape(", ".join(snapshot.ready_queue) or "-")
    return f"t={snapshot.clock:3d}  cpu={running}  {states}  ready=\\[{ready}]"


def _play(processes: List[Process], policy: str, settings: Settings, manual: bool, console: Console) -> None:
    """
    Replay the schedule, printing one line per tick.
    """
    session = SimulationSession(settings=settings)
    controller = PlaybackController(session, tick_interval=None if manual else settings.tick_interval)
    controller.load_processes(processes)
    result = controller.run_simulation(policy, settings.quantum)

    console.print(f"[bold]Replaying {result.algorithm}[/bold] (makespan {result.makespan} time units)")
    controller.subscribe(lambda snapshot: console.print(_format_tick(snapshot)))

    if manual:
        console.print("[dim]Enter = step, q = quit[/dim]")
        while controller.state is not PlaybackState.FINISHED:
            try:
                command = input().strip().lower()
            except EOFError:
                command = "q"
            if command in {"q", "quit", "exit"}:
                controller.reset()
                return
            controller.step()
    else:
        console.print("[dim]Press Ctrl+C to stop.[/dim]")
        controller.start()
        try:
            controller.wait_finished()
        except KeyboardInterrupt:
            controller.pause()
            console.print(f"[yellow]Playback stopped at t={controller.clock}.[/yellow]")
            return

    console.print(
        f"[bold]Done.[/bold] Avg waiting {result.mean_waiting_time:.2f}, "
        f"avg turnaround {result.mean_turnaround_time:.2f}"
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    console = Console()
    settings = DEFAULT_SETTINGS.with_overrides(
        quantum=args.quantum,
        tick_interval=getattr(args, "interval", None),
    )

    try:
        processes = _load_processes(args.workload)

        if args.command == "run":
            key = normalize_policy(args.algorithm)
            quantum = settings.quantum if key in QUANTUM_POLICIES else None
            _print_result(run_algorithm(key, processes, quantum=quantum), console)
            return 0

        if args.command == "compare":
            _run_compare(processes, args.algorithms, settings.quantum, console)
            return 0

        if args.command == "play":
            _play(processes, args.algorithm, settings, args.manual, console)
            return 0
    except (SchedulerError, ValueError, OSError) as exc:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]Error: {exc}[/red]")
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
