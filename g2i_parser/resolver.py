"""Discovery of the results directory and simulation log of the current run.

Every lookup is a polling loop with a fixed retry interval. A stop request is
checked at the top of each iteration and ends the lookup with a STOPPED
result rather than an error.
"""

from __future__ import annotations

import logging
import os
import re
import stat
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterator

from g2i_common.errors import DiscoveryError
from g2i_common.stop_token import StopToken

from .models import ResultsLocation

logger = logging.getLogger(__name__)

RETRY_INTERVAL_SECONDS = 5.0
START_TIME_SLACK_SECONDS = 60.0
SIMULATION_LOG_FILE_NAME = "simulation.log"
RESULTS_DIR_PATTERN = re.compile(r"^.+?-(\d{14})\d{3}$")


class LookupStatus(str, Enum):
    FOUND = "found"
    STOPPED = "stopped"


@dataclass(frozen=True)
class LookupResult:
    """Outcome of a single lookup loop."""

    status: LookupStatus
    path: Path | None = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @classmethod
    def stopped(cls) -> "LookupResult":
        return cls(LookupStatus.STOPPED)


def await_target_directory(
    root: Path,
    stop_token: StopToken,
    *,
    retry_interval: float = RETRY_INTERVAL_SECONDS,
) -> LookupResult:
    """Wait until ``root`` exists and is a directory."""
    logger.info("Looking for target directory at %s", root)
    while True:
        if stop_token.should_stop():
            return LookupResult.stopped()

        try:
            info = root.stat()
        except FileNotFoundError:
            stop_token.wait(retry_interval)
            continue
        except OSError as exc:
            raise DiscoveryError(
                f"Target path {root} exists but there is an error: {exc}",
                context={"path": root},
                cause=exc,
            ) from exc

        if not stat.S_ISDIR(info.st_mode):
            raise DiscoveryError(
                f"Was expecting directory at {root}, but found a file",
                context={"path": root},
            )

        resolved = root.resolve()
        logger.info("Target directory found at %s", resolved)
        return LookupResult(LookupStatus.FOUND, resolved)


def is_results_dir_name(name: str) -> bool:
    return RESULTS_DIR_PATTERN.match(name) is not None


def _iter_directories(root: Path) -> Iterator[Path]:
    """Yield ``root`` and every directory below it, depth-first in name order.

    A directory is yielded before its children and its whole subtree before
    its next sibling.
    """

    def _on_error(exc: OSError) -> None:
        logger.debug("Skipping unreadable path during walk: %s", exc)

    yield root
    for dirpath, dirnames, _ in os.walk(root, onerror=_on_error):
        dirnames.sort()
        if Path(dirpath) != root:
            yield Path(dirpath)


def find_results_directory(root: Path, start_time: float) -> Path | None:
    """Return the first results directory modified at or after start minus slack.

    The walk stops at the first match.
    """
    threshold = start_time - START_TIME_SLACK_SECONDS
    for candidate in _iter_directories(root):
        if not is_results_dir_name(candidate.name):
            continue
        try:
            mtime = candidate.stat().st_mtime
        except OSError as exc:
            logger.debug("Cannot stat candidate %s: %s", candidate, exc)
            continue
        logger.debug(
            "Found directory '%s' with mod time %s (start time: %s)",
            candidate,
            datetime.fromtimestamp(mtime),
            datetime.fromtimestamp(start_time),
        )
        if mtime >= threshold:
            logger.info(
                "Log directory '%s' with mod time %s is newer than start time minus slack %s",
                candidate,
                datetime.fromtimestamp(mtime),
                datetime.fromtimestamp(threshold),
            )
            return candidate
    return None


def await_results_directory(
    root: Path,
    start_time: float,
    stop_token: StopToken,
    *,
    retry_interval: float = RETRY_INTERVAL_SECONDS,
) -> LookupResult:
    """Walk ``root`` until a results directory belonging to this run appears."""
    logger.info("Searching for results directory...")
    while True:
        if stop_token.should_stop():
            return LookupResult.stopped()

        found = find_results_directory(root, start_time)
        if found is not None:
            return LookupResult(LookupStatus.FOUND, found)

        stop_token.wait(retry_interval)


def _is_shared_readable(mode: int) -> bool:
    if sys.platform.startswith("win"):
        return True
    return bool(mode & stat.S_IRGRP) and bool(mode & stat.S_IROTH)


def await_log_file(
    results_dir: Path,
    stop_token: StopToken,
    *,
    retry_interval: float = RETRY_INTERVAL_SECONDS,
) -> LookupResult:
    """Wait for the simulation log inside ``results_dir``."""
    log_path = results_dir / SIMULATION_LOG_FILE_NAME
    logger.info("Searching for %s file...", SIMULATION_LOG_FILE_NAME)
    while True:
        if stop_token.should_stop():
            return LookupResult.stopped()

        try:
            info = log_path.stat()
        except FileNotFoundError:
            stop_token.wait(retry_interval)
            continue
        except OSError as exc:
            raise DiscoveryError(
                f"Failed to inspect {log_path}: {exc}",
                context={"path": log_path},
                cause=exc,
            ) from exc

        if (
            stat.S_ISREG(info.st_mode)
            and _is_shared_readable(info.st_mode)
            and os.access(log_path, os.R_OK)
        ):
            resolved = log_path.resolve()
            logger.info("Found %s", resolved)
            return LookupResult(LookupStatus.FOUND, resolved)

        raise DiscoveryError(
            f"Something wrong happened when attempting to open {SIMULATION_LOG_FILE_NAME}",
            context={"path": log_path, "mode": oct(stat.S_IMODE(info.st_mode))},
        )


def resolve_results(
    target_dir: Path,
    start_time: float,
    stop_token: StopToken,
    *,
    retry_interval: float = RETRY_INTERVAL_SECONDS,
) -> ResultsLocation | None:
    """Run the three lookups in order.

    Returns None when a stop was requested before the log file was found.
    Raises DiscoveryError on any unrecoverable filesystem condition.
    """
    location = ResultsLocation(target_dir=target_dir)

    result = await_target_directory(
        target_dir, stop_token, retry_interval=retry_interval
    )
    if not result.found:
        return None
    location.target_dir = result.path

    result = await_results_directory(
        location.target_dir, start_time, stop_token, retry_interval=retry_interval
    )
    if not result.found:
        return None
    location.results_dir = result.path

    result = await_log_file(
        location.results_dir, stop_token, retry_interval=retry_interval
    )
    if not result.found:
        return None
    location.log_file = result.path
    return location
