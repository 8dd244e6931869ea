# Copyright (c) Syntropy Systems
"""Run context and worker pool.

Each worker owns one sandbox and benchmarks whole operations, so all
trials of an operation run sequentially on the same sandbox. Workers talk
to the dispatcher only through the task and result queues.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from queue import Empty, Queue
from threading import Event, Thread
from typing import TYPE_CHECKING, Callable, Union

from weightbench.adapter import ExecutionAdapter, describe_error
from weightbench.analysis import RegressionAnalyzer
from weightbench.collector import SampleCollector
from weightbench.config import BenchConfig
from weightbench.errors import OperationError
from weightbench.models import OperationFailure, OperationResult, SampleSet

if TYPE_CHECKING:
    from weightbench.adapter import SandboxFactory
    from weightbench.collector import TrialCallback
    from weightbench.models import ComponentAssignment, OperationSpec, RawSample, TrialConfig

logger = logging.getLogger(__name__)

# (event, spec, detail) where event is "start", "result" or "failure"
RunListener = Callable[[str, "OperationSpec", Union[OperationResult, OperationFailure, None]], None]


@dataclass
class BenchmarkRun:
    """Everything one benchmarking run needs, passed explicitly."""

    operations: list[OperationSpec]
    sandbox_factory: SandboxFactory
    config: BenchConfig = field(default_factory=BenchConfig)
    clock: Callable[[], int] = time.perf_counter_ns

    @property
    def trial(self) -> TrialConfig:
        return self.config.trial


@dataclass
class RunReport:
    """Outcome of a run. Partial when the run was cancelled."""

    results: list[OperationResult] = field(default_factory=list)
    failures: list[OperationFailure] = field(default_factory=list)
    sample_sets: list[SampleSet] = field(default_factory=list)
    skipped: list[OperationSpec] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class _Outcome:
    spec: OperationSpec
    result: OperationResult | None = None
    samples: SampleSet | None = None
    failure: OperationFailure | None = None


def failure_from(spec: OperationSpec, exc: Exception) -> OperationFailure:
    """Describe an operation-level failure for the report."""
    if isinstance(exc, OperationError):
        return OperationFailure(
            module=spec.module,
            name=spec.name,
            kind=exc.kind,
            message=str(exc),
            assignment=exc.assignment,
        )
    return OperationFailure(
        module=spec.module,
        name=spec.name,
        kind="internal_error",
        message=f"{spec.key}: {describe_error(exc)}",
    )


class _WorkerExecutor:
    """Adapter wrapper that swaps in a fresh sandbox after a timeout."""

    def __init__(
        self,
        factory: SandboxFactory,
        config: BenchConfig,
        clock: Callable[[], int] = time.perf_counter_ns,
    ) -> None:
        self._factory = factory
        self._config = config
        self._clock = clock
        self.replacements = 0
        self.adapter = self._new_adapter()

    def _new_adapter(self) -> ExecutionAdapter:
        sandbox, storage = self._factory()
        return ExecutionAdapter(
            sandbox,
            storage,
            timeout=self._config.trial_timeout,
            verify=self._config.verify,
            clock=self._clock,
        )

    def execute(self, spec: OperationSpec, assignment: ComponentAssignment) -> RawSample:
        if self.adapter.tainted:
            logger.info("Replacing tainted sandbox before next trial of %s", spec.key)
            self.adapter = self._new_adapter()
            self.replacements += 1
        return self.adapter.execute(spec, assignment)


def benchmark_operation(
    spec: OperationSpec,
    executor: _WorkerExecutor | ExecutionAdapter,
    config: BenchConfig,
    on_trial: TrialCallback | None = None,
) -> tuple[SampleSet, OperationResult]:
    """Collect and analyze one operation. Raises OperationError on failure."""
    collector = SampleCollector(executor, max_discard_fraction=config.max_discard_fraction)
    samples = collector.collect(spec, config.trial, on_trial=on_trial)
    result = RegressionAnalyzer(trim_fraction=config.trim_fraction).analyze_all(samples)
    return samples, result


class WorkerPool:
    """Benchmarks operations concurrently with at most ``concurrency`` workers."""

    def __init__(self, run: BenchmarkRun, listener: RunListener | None = None) -> None:
        self.run_context = run
        self.listener = listener
        self._tasks: Queue[OperationSpec] = Queue()
        self._outcomes: Queue[_Outcome] = Queue()
        self._cancel = Event()
        self._factory_errors: list[str] = []

    def cancel(self) -> None:
        """Stop dispatching new operations. In-flight trials finish."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _notify(
        self,
        event: str,
        spec: OperationSpec,
        detail: OperationResult | OperationFailure | None = None,
    ) -> None:
        if self.listener is None:
            return
        try:
            self.listener(event, spec, detail)
        except Exception:
            logger.exception("Run listener failed on %s for %s", event, spec.key)

    def _worker(self, index: int) -> None:
        config = self.run_context.config
        try:
            executor = _WorkerExecutor(
                self.run_context.sandbox_factory, config, self.run_context.clock
            )
        except Exception as exc:
            logger.exception("Worker %d could not create a sandbox", index)
            self._factory_errors.append(describe_error(exc))
            return

        while not self._cancel.is_set():
            try:
                spec = self._tasks.get_nowait()
            except Empty:
                break

            logger.debug("Worker %d benchmarking %s", index, spec.key)
            self._notify("start", spec)
            try:
                samples, result = benchmark_operation(spec, executor, config)
            except Exception as exc:
                if not isinstance(exc, OperationError):
                    logger.exception("Unexpected error while benchmarking %s", spec.key)
                failure = failure_from(spec, exc)
                logger.error("%s", failure.message)
                self._outcomes.put(_Outcome(spec=spec, failure=failure))
                self._notify("failure", spec, failure)
                continue

            self._outcomes.put(_Outcome(spec=spec, result=result, samples=samples))
            self._notify("result", spec, result)

    def run(self) -> RunReport:
        """Benchmark every operation of the run and return the report."""
        operations = self.run_context.operations
        for spec in operations:
            self._tasks.put(spec)

        workers = min(self.run_context.config.concurrency, len(operations))
        threads = [
            Thread(target=self._worker, args=(i,), name=f"weightbench-worker-{i}", daemon=True)
            for i in range(workers)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            while thread.is_alive():
                thread.join(timeout=0.5)

        return self._build_report(operations)

    def _build_report(self, operations: list[OperationSpec]) -> RunReport:
        outcomes: dict[str, _Outcome] = {}
        while True:
            try:
                outcome = self._outcomes.get_nowait()
            except Empty:
                break
            outcomes[outcome.spec.key] = outcome

        report = RunReport(cancelled=self.cancelled)
        for spec in operations:
            outcome = outcomes.get(spec.key)
            if outcome is None:
                if self.cancelled or not self._factory_errors:
                    report.skipped.append(spec)
                else:
                    report.failures.append(
                        OperationFailure(
                            module=spec.module,
                            name=spec.name,
                            kind="sandbox_unavailable",
                            message=f"{spec.key}: {self._factory_errors[0]}",
                        )
                    )
                continue
            if outcome.failure is not None:
                report.failures.append(outcome.failure)
            if outcome.result is not None:
                report.results.append(outcome.result)
            if outcome.samples is not None:
                report.sample_sets.append(outcome.samples)
        return report


def run_benchmarks(run: BenchmarkRun, listener: RunListener | None = None) -> RunReport:
    """Convenience wrapper around ``WorkerPool(run).run()``."""
    return WorkerPool(run, listener).run()
