from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from ..models import Row
from ..models.column_definition import ColumnDefinition, FormatRule
from ..models.validation_error import ValidationError
from .orchestrator import ValidationSettings, validate

"""Background validation with last-request-wins semantics.

The engine itself is single threaded; ValidationWorker only moves a run off
the caller's thread. Every submit() bumps a generation counter: a queued run
that has not started is cancelled, a running one finishes but its result is
discarded. Results are never merged across generations.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "StaleValidationError",
    "ValidationTicket",
    "ValidationWorker",
]

ResultCallback = Callable[[int, list[ValidationError]], None]


class StaleValidationError(Exception):
    """The ticket belongs to a run superseded by a later submit()."""


@dataclass(frozen=True)
class ValidationTicket:
    generation: int
    future: Future[list[ValidationError]] = field(compare=False, repr=False)


class ValidationWorker:
    """Runs validate() on a single background thread.

    Args:
        settings: Passed to every run
        on_result: Called as on_result(generation, errors) from the worker
            thread, only for the latest generation
    """

    def __init__(
        self,
        *,
        settings: ValidationSettings | None = None,
        on_result: ResultCallback | None = None,
    ) -> None:
        self._settings = settings
        self._on_result = on_result
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pupil-validate")
        self._lock = threading.Lock()
        self._generation = 0
        self._pending: Future[list[ValidationError]] | None = None

    @property
    def latest_generation(self) -> int:
        with self._lock:
            return self._generation

    def is_current(self, ticket: ValidationTicket) -> bool:
        return ticket.generation == self.latest_generation

    def submit(
        self,
        rows: Sequence[Row],
        columns: Sequence[ColumnDefinition],
        format_rules: Iterable[FormatRule] | None = None,
    ) -> ValidationTicket:
        # the run gets its own copy; the caller may keep editing its rows
        snapshot = [dict(row) for row in rows]
        rules = list(format_rules) if format_rules is not None else None
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._pending is not None and self._pending.cancel():
                logger.debug(f"validation run {generation - 1} cancelled before start")
            future = self._executor.submit(validate, snapshot, list(columns), rules, settings=self._settings)
            self._pending = future
        if self._on_result is not None:
            future.add_done_callback(partial(self._deliver, generation))
        return ValidationTicket(generation=generation, future=future)

    def result(self, ticket: ValidationTicket, timeout: float | None = None) -> list[ValidationError]:
        """Wait for a run. Raises StaleValidationError once a newer run was submitted."""
        if not self.is_current(ticket):
            raise StaleValidationError(f"validation run {ticket.generation} was superseded")
        errors = ticket.future.result(timeout)
        if not self.is_current(ticket):
            raise StaleValidationError(f"validation run {ticket.generation} was superseded")
        return errors

    def _deliver(self, generation: int, future: Future[list[ValidationError]]) -> None:
        if future.cancelled() or generation != self.latest_generation:
            return
        exc = future.exception()
        if exc is not None:
            # result() re-raises it for whoever waits on the ticket
            logger.error(f"validation run {generation} failed: {exc}")
            return
        assert self._on_result is not None
        self._on_result(generation, future.result())

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> ValidationWorker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.shutdown()
