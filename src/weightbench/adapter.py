# Copyright (c) Syntropy Systems
"""Execution adapter: run one trial against an isolated sandbox state."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Thread
from typing import TYPE_CHECKING, Callable, Protocol

from weightbench.errors import SandboxTaintedError, TrialTimeout
from weightbench.models import RawSample, format_assignment

if TYPE_CHECKING:
    from weightbench.models import ComponentAssignment, OperationSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageCounters:
    """Storage activity of a single invocation."""

    reads: int = 0
    writes: int = 0
    proof_size: int = 0


class Sandbox(Protocol):
    """Isolated execution engine owned by one worker.

    Sandboxes signal a failed or over-limit invocation by raising, usually
    ``TrialExecutionFailure``.
    """

    def snapshot(self) -> None:
        """Establish a state snapshot no other trial can observe."""
        ...

    def prepare(self, spec: OperationSpec, assignment: ComponentAssignment) -> object:
        """Build the call for an assignment. Not timed."""
        ...

    def run(self, code_reference: str, call: object) -> object:
        """Execute the call. The only timed step."""
        ...

    def verify(self, spec: OperationSpec, assignment: ComponentAssignment) -> None:
        """Check post-conditions of the call. Not timed."""
        ...

    def restore(self) -> None:
        """Discard every write made since the snapshot."""
        ...


class StorageBackend(Protocol):
    """Storage with per-invocation counters."""

    def reset_counters(self) -> None:
        ...

    def read_counters(self) -> StorageCounters:
        ...


# Builds one sandbox with its storage backend per worker
SandboxFactory = Callable[[], "tuple[Sandbox, StorageBackend]"]


def describe_error(exc: BaseException) -> str:
    """Short ``Type: message`` description kept on failed samples."""
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


class ExecutionAdapter:
    """Runs single trials and turns their outcome into RawSamples.

    Features:
    - Times only the sandbox ``run`` call, never setup or teardown
    - Restores the sandbox snapshot after every trial
    - Converts errors and timeouts into failed samples
    - Refuses further trials once a timed-out trial may still hold the sandbox
    """

    sandbox: Sandbox
    storage: StorageBackend
    timeout: float | None
    verify: bool
    _clock: Callable[[], int]
    _tainted: bool

    def __init__(
        self,
        sandbox: Sandbox,
        storage: StorageBackend,
        timeout: float | None = 60.0,
        verify: bool = False,
        clock: Callable[[], int] = time.perf_counter_ns,
    ) -> None:
        """Initialize an adapter.

        Args:
            sandbox: Sandbox instance, used exclusively by this adapter
            storage: Storage backend whose counters the sandbox updates
            timeout: Per-trial timeout in seconds, None to wait forever
            verify: Run the sandbox's verify step after each trial
            clock: Monotonic nanosecond clock

        """
        self.sandbox = sandbox
        self.storage = storage
        self.timeout = timeout
        self.verify = verify
        self._clock = clock
        self._tainted = False

    @property
    def tainted(self) -> bool:
        """True once the sandbox can no longer be trusted for isolation."""
        return self._tainted

    def execute(self, spec: OperationSpec, assignment: ComponentAssignment) -> RawSample:
        """Execute one trial and return its sample."""
        if self._tainted:
            msg = f"Sandbox for {spec.key} is tainted by an earlier trial"
            raise SandboxTaintedError(msg)
        spec.validate_assignment(assignment)

        outcome: list[RawSample] = []
        if self.timeout is None:
            self._guarded_trial(spec, assignment, outcome)
            return outcome[0]

        thread = Thread(
            target=self._guarded_trial,
            args=(spec, assignment, outcome),
            name=f"trial-{spec.key}",
            daemon=True,
        )
        thread.start()
        thread.join(self.timeout)

        if thread.is_alive():
            # The abandoned thread still owns the sandbox
            self._tainted = True
            error = TrialTimeout(f"trial timed out after {self.timeout}s")
            logger.warning(
                "%s timed out at %s", spec.key, format_assignment(assignment)
            )
            return RawSample.failed(assignment, describe_error(error))

        return outcome[0]

    def _guarded_trial(
        self,
        spec: OperationSpec,
        assignment: ComponentAssignment,
        outcome: list[RawSample],
    ) -> None:
        try:
            outcome.append(self._trial(spec, assignment))
        except Exception as exc:
            # Snapshot or restore failed, isolation is gone
            self._tainted = True
            logger.exception("Sandbox isolation failed for %s", spec.key)
            outcome.append(
                RawSample.failed(assignment, f"sandbox isolation failed: {describe_error(exc)}")
            )

    def _trial(self, spec: OperationSpec, assignment: ComponentAssignment) -> RawSample:
        self.sandbox.snapshot()
        try:
            call = self.sandbox.prepare(spec, dict(assignment))
            self.storage.reset_counters()
            start = self._clock()
            _ = self.sandbox.run(spec.key, call)
            elapsed = self._clock() - start
            counters = self.storage.read_counters()
            if self.verify:
                self.sandbox.verify(spec, dict(assignment))
        except Exception as exc:
            logger.debug("Trial of %s failed: %s", spec.key, exc)
            return RawSample.failed(assignment, describe_error(exc))
        finally:
            self.sandbox.restore()

        return RawSample(
            assignment=dict(assignment),
            elapsed_time=max(elapsed, 0),
            reads=counters.reads,
            writes=counters.writes,
            proof_size=counters.proof_size,
        )
