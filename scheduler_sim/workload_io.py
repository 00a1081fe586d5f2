from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import List

from .models import Process

logger = logging.getLogger(__name__)


def sample_workload() -> List[Process]:
    """
    Three-process demo set used when no workload file is given.
    """
    return [
        Process("P1", arrival_time=0, burst_time=8, priority=2),
        Process("P2", arrival_time=1, burst_time=4, priority=1),
        Process("P3", arrival_time=2, burst_time=9, priority=3),
    ]


def load_workload(path: str | Path) -> List[Process]:
    """
    Load a workload from a JSON or CSV file into a list of Process objects.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        processes = _load_json(path)
    elif suffix == ".csv":
        processes = _load_csv(path)
    else:
        raise ValueError(f"Unsupported workload format: {suffix} (use .json or .csv)")

    logger.info("Loaded %d processes from %s", len(processes), path)
    return processes


def _load_json(path: Path) -> List[Process]:
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise ValueError("JSON workload must be a list of process objects")

    return [_process_from_mapping(entry) for entry in raw]


def _load_csv(path: Path) -> List[Process]:
    processes: List[Process] = []
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            processes.append(_process_from_mapping(row))
    return processes


def _process_from_mapping(mapping) -> Process:
    try:
        pid = str(mapping["pid"]).strip()
        arrival_time = int(mapping["arrival_time"])
        burst_time = int(mapping["burst_time"])
        priority_val = mapping.get("priority")
        priority = int(priority_val) if priority_val not in (None, "") else None
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid process entry: {mapping!r}") from exc

    return Process(
        pid=pid,
        arrival_time=arrival_time,
        burst_time=burst_time,
        priority=priority,
    )
