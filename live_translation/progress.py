"""
Progress Aggregator

Tracks per-file load progress for the current load attempt and derives an
overall percentage plus a status line. Subscribers receive a copy of the
state after every change; they never see (or mutate) the live object.

Both per-file and overall progress are non-decreasing within one attempt.
Overall is max(previous overall, round(mean of file percentages)) so a noisy
file can never make the bar appear to move backwards.
"""

import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

IDLE_STATUS = 'Idle'
READY_STATUS = 'Ready!'
ERROR_STATUS = 'Error loading model'


@dataclass
class FileProgress:
    file_name: str
    progress: int
    status: str


@dataclass
class ProgressState:
    files: Dict[str, FileProgress] = field(default_factory=dict)
    overall_progress: int = 0
    status: str = IDLE_STATUS
    model_name: str = ''

    def copy(self) -> 'ProgressState':
        return ProgressState(
            files={name: replace(entry) for name, entry in self.files.items()},
            overall_progress=self.overall_progress,
            status=self.status,
            model_name=self.model_name,
        )

    def to_dict(self) -> dict:
        return {
            'files': {
                name: {'fileName': entry.file_name, 'progress': entry.progress, 'status': entry.status}
                for name, entry in self.files.items()
            },
            'overallProgress': self.overall_progress,
            'status': self.status,
            'modelName': self.model_name,
        }


def _clamp_percent(value) -> int:
    try:
        value = float(value or 0)
    except (TypeError, ValueError):
        value = 0.0
    value = max(0.0, min(100.0, value))
    # half-up, so 49.5 shows as 50
    return int(value + 0.5)


class ProgressAggregator:
    """
    Owns the ProgressState of the current load attempt and the subscriber
    registry. Only the orchestrator calls the mutating methods.
    """

    def __init__(self):
        self._state = ProgressState()
        self._subscribers: Dict[str, Callable[[ProgressState], None]] = {}
        self._ids = itertools.count(1)

    # --- Subscriber registry ---

    def subscribe(self, callback: Callable[[ProgressState], None]) -> str:
        subscription_id = str(next(self._ids))
        self._subscribers[subscription_id] = callback
        return subscription_id

    def unsubscribe(self, subscription_id: Optional[str]) -> None:
        self._subscribers.pop(subscription_id, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def snapshot(self) -> ProgressState:
        return self._state.copy()

    def broadcast(self) -> None:
        for subscription_id, callback in list(self._subscribers.items()):
            try:
                callback(self._state.copy())
            except Exception:
                logger.exception("Progress subscriber %s failed", subscription_id)

    # --- Attempt lifecycle ---

    def reset(self) -> None:
        self._state = ProgressState()
        self.broadcast()

    def begin_attempt(self, display_name: str) -> None:
        """A new load attempt starts: everything goes back to zero."""
        self._state = ProgressState(
            status=f"Initializing {display_name}",
            model_name=display_name,
        )
        self.broadcast()

    def initiate(self, display_name: str) -> None:
        self._state.files.clear()
        self._state.overall_progress = 0
        self._state.model_name = display_name
        self._state.status = f"Starting {display_name}"
        self.broadcast()

    def update_file(self, file_name: Optional[str], progress, total_files=None) -> None:
        """
        Record progress for one file and recompute the overall value.

        When no file name is given and no file has been seen yet, the raw
        value drives the overall percentage directly (single-file models
        that report before any per-file bookkeeping exists).
        """
        state = self._state
        value = _clamp_percent(progress)

        try:
            total_files = int(total_files or 0)
        except (TypeError, ValueError):
            total_files = 0

        if not file_name and not state.files:
            state.overall_progress = max(state.overall_progress, value)
        else:
            file_name = file_name or 'model'
            previous = state.files.get(file_name)
            if previous is not None:
                value = max(previous.progress, value)
            state.files[file_name] = FileProgress(file_name, value, f"Loading {file_name}")

            mean = sum(entry.progress for entry in state.files.values()) / len(state.files)
            state.overall_progress = max(state.overall_progress, _clamp_percent(mean))

        known = len(state.files)
        state.status = f"Loading {state.model_name} ({known}/{max(total_files, known)} files)"
        self.broadcast()

    def mark_ready(self) -> None:
        for name, entry in self._state.files.items():
            self._state.files[name] = FileProgress(name, 100, f"Loaded {name}")
        self._state.overall_progress = 100
        self._state.status = READY_STATUS
        self.broadcast()

    def mark_error(self) -> None:
        self._state.status = ERROR_STATUS
        self.broadcast()
