# Copyright (c) Syntropy Systems
"""In-process sandbox and storage doubles.

Used by the test suite and by the bundled ``demo`` declarations. The fake
sandbox executes plain Python callables against a counting key-value store
whose snapshot/restore gives each trial an isolated view of state.
"""
from __future__ import annotations

from threading import Lock
from typing import TYPE_CHECKING, Callable

from weightbench.adapter import StorageCounters
from weightbench.errors import TrialExecutionFailure

if TYPE_CHECKING:
    from collections.abc import Mapping

    from weightbench.adapter import SandboxFactory
    from weightbench.models import ComponentAssignment, OperationSpec

OperationBody = Callable[["CountingStorage", "ComponentAssignment"], None]
VerifyHook = Callable[["CountingStorage", "ComponentAssignment"], None]


class ManualClock:
    """Nanosecond clock that only moves when told to."""

    def __init__(self, start: int = 0) -> None:
        self._now = start
        self._lock = Lock()

    def __call__(self) -> int:
        with self._lock:
            return self._now

    def advance(self, nanoseconds: int) -> None:
        with self._lock:
            self._now += nanoseconds


class CountingStorage:
    """Dict-backed storage that counts reads, writes and proof bytes."""

    def __init__(self, initial: Mapping[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})
        self._saved: dict[str, bytes] | None = None
        self._counters = StorageCounters()

    def get(self, key: str) -> bytes | None:
        value = self._data.get(key)
        size = len(key) + (len(value) if value is not None else 0)
        self._counters = StorageCounters(
            reads=self._counters.reads + 1,
            writes=self._counters.writes,
            proof_size=self._counters.proof_size + size,
        )
        return value

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = value
        self._counters = StorageCounters(
            reads=self._counters.reads,
            writes=self._counters.writes + 1,
            proof_size=self._counters.proof_size,
        )

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def snapshot(self) -> None:
        self._saved = dict(self._data)

    def restore(self) -> None:
        if self._saved is not None:
            self._data = self._saved
            self._saved = None

    def reset_counters(self) -> None:
        self._counters = StorageCounters()

    def read_counters(self) -> StorageCounters:
        return self._counters


class FakeSandbox:
    """Sandbox that dispatches code references to Python callables."""

    def __init__(
        self,
        storage: CountingStorage,
        operations: Mapping[str, OperationBody],
        verifiers: Mapping[str, VerifyHook] | None = None,
    ) -> None:
        self.storage = storage
        self.operations = dict(operations)
        self.verifiers = dict(verifiers or {})
        self.runs = 0

    def snapshot(self) -> None:
        self.storage.snapshot()

    def prepare(self, spec: OperationSpec, assignment: ComponentAssignment) -> object:
        if spec.key not in self.operations:
            msg = f"No operation registered for {spec.key}"
            raise TrialExecutionFailure(msg)
        return dict(assignment)

    def run(self, code_reference: str, call: object) -> object:
        self.runs += 1
        body = self.operations[code_reference]
        body(self.storage, call)  # type: ignore[arg-type]
        return None

    def verify(self, spec: OperationSpec, assignment: ComponentAssignment) -> None:
        hook = self.verifiers.get(spec.key)
        if hook is not None:
            hook(self.storage, assignment)

    def restore(self) -> None:
        self.storage.restore()


def fake_factory(
    operations: Mapping[str, OperationBody],
    initial: Mapping[str, bytes] | None = None,
    verifiers: Mapping[str, VerifyHook] | None = None,
) -> SandboxFactory:
    """Factory building a fresh FakeSandbox and storage per worker."""

    def factory() -> tuple[FakeSandbox, CountingStorage]:
        storage = CountingStorage(initial)
        return FakeSandbox(storage, operations, verifiers), storage

    return factory


# --- Demo operations ---

_DEMO_SEED = {f"item:{i}": b"x" * 32 for i in range(1000)}


def _demo_write_items(storage: CountingStorage, assignment: ComponentAssignment) -> None:
    for i in range(assignment["n"]):
        storage.set(f"new:{i}", b"y" * 32)


def _demo_read_items(storage: CountingStorage, assignment: ComponentAssignment) -> None:
    for i in range(assignment["n"]):
        _ = storage.get(f"item:{i}")


def _demo_read_write(storage: CountingStorage, assignment: ComponentAssignment) -> None:
    for i in range(assignment["r"]):
        _ = storage.get(f"item:{i}")
    for j in range(assignment["w"]):
        storage.set(f"copy:{j}", b"z" * 16)


def _demo_noop(storage: CountingStorage, assignment: ComponentAssignment) -> None:
    _ = storage.get("item:0")


def demo_sandbox() -> tuple[FakeSandbox, CountingStorage]:
    """Sandbox factory for the ``demo`` module used in docs and tests."""
    return fake_factory(
        {
            "demo::write_items": _demo_write_items,
            "demo::read_items": _demo_read_items,
            "demo::read_write": _demo_read_write,
            "demo::noop": _demo_noop,
        },
        initial=_DEMO_SEED,
    )()
