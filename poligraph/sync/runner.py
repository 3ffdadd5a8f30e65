"""
Full sync orchestrator.

Runs the sync steps strictly one after the other as shell commands, each with
its own timeout. A failing step is recorded and the run moves on to the next
one; the summary tells which step to resume from.
"""

import logging
import os
import shlex
import subprocess
import sys
import time
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import yaml

from poligraph import config

logger = logging.getLogger(__name__)

PYTHON = shlex.quote(sys.executable)


@dataclass
class SyncStep:
    name: str
    command: str
    ai: bool = False  # skipped with --skip-ai
    timeout: Optional[int] = None  # seconds, defaults to SYNC_DEFAULT_TIMEOUT_SECONDS


@dataclass
class StepResult:
    name: str
    step: int
    success: bool
    duration: float
    error: Optional[str] = None


DEFAULT_STEPS: List[SyncStep] = [
    SyncStep("RNE (maires)", f"{PYTHON} -m poligraph.sync.rne", timeout=20 * 60),
    SyncStep("Affaires : rapport de doublons", f"{PYTHON} -m poligraph.sync.affair_duplicates"),
]


def load_steps(path: str) -> List[SyncStep]:
    """Read steps from a YAML list of {name, command, ai?, timeout?} mappings"""
    with open(Path(path), encoding="utf-8") as f:
        data = yaml.safe_load(f) or []

    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of steps")

    steps = []
    for i, entry in enumerate(data, start=1):
        if not isinstance(entry, dict) or not entry.get("name") or not entry.get("command"):
            raise ValueError(f"{path}: step {i} needs a name and a command")
        steps.append(
            SyncStep(
                name=str(entry["name"]),
                command=str(entry["command"]),
                ai=bool(entry.get("ai", False)),
                timeout=int(entry["timeout"]) if entry.get("timeout") is not None else None,
            )
        )
    return steps


def select_steps(steps: List[SyncStep], from_step: int = 1, skip_ai: bool = False) -> List[Tuple[int, SyncStep]]:
    """Steps to run with their 1-based position in the full list"""
    return [
        (index, step)
        for index, step in enumerate(steps, start=1)
        if index >= from_step and not (skip_ai and step.ai)
    ]


def format_duration(seconds: float) -> str:
    if seconds >= 60:
        return f"{int(seconds // 60)}m {round(seconds % 60)}s"
    return f"{seconds:.1f}s"


def run_step(index: int, step: SyncStep, dry_run: bool = False, clock: Callable[[], float] = time.monotonic) -> StepResult:
    command = step.command + (" --dry-run" if dry_run else "")
    timeout = step.timeout or config.SYNC_DEFAULT_TIMEOUT_SECONDS
    start = clock()
    error = None

    try:
        completed = subprocess.run(command, shell=True, env=os.environ.copy(), timeout=timeout)
        if completed.returncode != 0:
            error = f"Command exited with status {completed.returncode}"
    except subprocess.TimeoutExpired:
        error = f"Timed out after {format_duration(timeout)}"
    except OSError as e:
        error = f"Could not start command: {e}"

    return StepResult(name=step.name, step=index, success=error is None, duration=clock() - start, error=error)


def run_sync(
    steps: List[SyncStep],
    dry_run: bool = False,
    skip_ai: bool = False,
    from_step: int = 1,
    clock: Callable[[], float] = time.monotonic,
) -> List[StepResult]:
    active = select_steps(steps, from_step, skip_ai)

    logger.info("=" * 60)
    logger.info("Full Sync - %s", date.today().isoformat())
    logger.info("Mode: %s", "DRY RUN" if dry_run else "LIVE")
    if skip_ai:
        logger.info("AI steps: SKIPPED")
    if from_step > 1:
        logger.info("Resuming from step %d", from_step)
    logger.info("Steps: %d / %d", len(active), len(steps))
    logger.info("=" * 60)

    results = []
    for index, step in active:
        logger.info("▶ [%d/%d] %s", index, len(steps), step.name)
        logger.info("  %s", step.command + (" --dry-run" if dry_run else ""))

        result = run_step(index, step, dry_run=dry_run, clock=clock)
        results.append(result)

        if result.success:
            logger.info("✓ [%d] %s completed in %s", index, step.name, format_duration(result.duration))
        else:
            logger.error(
                "✗ [%d] %s failed after %s: %s", index, step.name, format_duration(result.duration), result.error
            )

    return results


def summarize(results: List[StepResult], total_duration: float) -> int:
    """Log the run summary and return the process exit code"""
    succeeded = sum(1 for r in results if r.success)
    failed = len(results) - succeeded

    logger.info("=" * 60)
    logger.info("Full Sync Summary")
    logger.info("=" * 60)
    logger.info("Total duration: %dm %ds", int(total_duration // 60), round(total_duration % 60))
    logger.info("Steps: %d succeeded, %d failed", succeeded, failed)

    for r in results:
        logger.info("  %s [%d] %s (%s)", "✓" if r.success else "✗", r.step, r.name, format_duration(r.duration))

    if failed:
        first_failure = next(r for r in results if not r.success)
        logger.info("To resume from first failure: python scripts/sync_full.py --from=%d", first_failure.step)
        return 1

    logger.info("Full sync completed successfully!")
    return 0
