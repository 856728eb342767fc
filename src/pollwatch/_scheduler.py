"""The poll, diff, execute, sleep loop.

The scheduler owns the snapshot and drives every other component:

    polling -> diffing -> idle      -> sleeping (interval) -> polling ...
                       -> executing -> sleeping (sleep)    -> polling ...

The first resolution only records a baseline. Every later cycle compares
against the snapshot, runs the command once per change record in order, and
then sleeps once. Nothing is polled while the command runs or during the
sleep that follows it, so changes made by the command itself, or made in
quick succession, are picked up together on the next poll.
"""

from __future__ import annotations

import contextlib
import signal
import threading
from enum import StrEnum
from typing import TYPE_CHECKING, Self, final

from ._differ import diff
from ._exec import CommandConfig, CommandResult, run_command, truncate_output
from ._resolver import PathResolver
from ._snapshot import Snapshot
from ._template import CommandTemplate
from .exceptions import ConfigValidationError
from .utils import get_default_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from structlog.typing import FilteringBoundLogger

    from ._models import ChangeRecord
    from .config import WatchConfig

type CommandRunner = Callable[[Sequence[str], CommandConfig], CommandResult]

# Maximum captured output logged per stream, in bytes
LOGGED_OUTPUT_BYTES: int = 4096


class SchedulerState(StrEnum):
    """Where the scheduler is in its cycle."""

    STOPPED = "stopped"
    POLLING = "polling"
    DIFFING = "diffing"
    IDLE = "idle"
    EXECUTING = "executing"
    SLEEPING = "sleeping"


@final
class Scheduler:
    """Drives the watch loop until stopped.

    Sleeping waits on a ``threading.Event``; ``stop()`` sets it, which wakes a
    pending sleep immediately. A command that is already running is allowed
    to finish before the loop exits.
    """

    __slots__ = (
        "_command_config",
        "_idle_cycles",
        "_interval",
        "_logger",
        "_resolver",
        "_runner",
        "_sleep",
        "_snapshot",
        "_state",
        "_stop_event",
        "_template",
    )

    def __init__(
        self,
        resolver: PathResolver,
        template: CommandTemplate,
        *,
        interval: float,
        sleep: float | None = None,
        command_config: CommandConfig | None = None,
        logger: FilteringBoundLogger | None = None,
        runner: CommandRunner = run_command,
        stop_event: threading.Event | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            resolver: Resolves the watch sources on every poll.
            template: The command to run for each change record.
            interval: Seconds to sleep after a poll without changes.
            sleep: Seconds to sleep after the command ran. Defaults to
                ``interval``.
            command_config: How the command is executed.
            logger: Logger for phase transitions and command results.
            runner: Executes a rendered command and waits for it.
            stop_event: Event used for sleeping and stopping. A new event is
                created if None.

        Raises:
            ConfigValidationError: If a duration is negative.
        """
        sleep = interval if sleep is None else sleep
        for key, value in (("interval", interval), ("sleep", sleep)):
            if value < 0:
                msg = f"'{key}' must be a non-negative number of seconds, got {value}"
                raise ConfigValidationError(
                    msg, key=key, value=value, expected="non-negative seconds"
                )

        self._resolver: PathResolver = resolver
        self._template: CommandTemplate = template
        self._interval: float = interval
        self._sleep: float = sleep
        self._command_config: CommandConfig = command_config or CommandConfig()
        self._logger: FilteringBoundLogger = logger or get_default_logger()
        self._runner: CommandRunner = runner
        self._stop_event: threading.Event = stop_event or threading.Event()
        self._snapshot: Snapshot = Snapshot()
        self._state: SchedulerState = SchedulerState.STOPPED
        self._idle_cycles: int = 0

    @classmethod
    def from_config(
        cls,
        config: WatchConfig,
        *,
        logger: FilteringBoundLogger | None = None,
    ) -> Self:
        """Build a scheduler and its collaborators from a validated config.

        Args:
            config: The validated configuration.
            logger: Logger shared by the scheduler and the resolver.

        Returns:
            A scheduler ready to run.

        Raises:
            GlobPatternError: If any glob pattern is malformed.
        """
        resolver = PathResolver(
            config.sources,
            escalate_after=config.escalate_after,
            logger=logger,
        )
        return cls(
            resolver,
            CommandTemplate.from_args(config.command),
            interval=config.interval,
            sleep=config.sleep,
            command_config=CommandConfig(
                shell=config.shell,
                cwd=config.cwd,
                env=dict(config.env),
                timeout=config.timeout,
            ),
            logger=logger,
        )

    @property
    def snapshot(self) -> Snapshot:
        """The state recorded by the most recent poll."""
        return self._snapshot

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def sleep(self) -> float:
        return self._sleep

    @property
    def stopped(self) -> bool:
        """Whether a stop has been requested."""
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Request the loop to stop at the next opportunity."""
        self._stop_event.set()

    def baseline(self) -> None:
        """Record the current state of every watched path without reporting it."""
        self._state = SchedulerState.POLLING
        resolution = self._resolver.resolve()
        self._snapshot = Snapshot.from_resolution(resolution)
        self._idle_cycles = 0
        self._logger.info("baseline_recorded", paths=len(self._snapshot))

    def poll(self) -> list[ChangeRecord]:
        """Resolve the watch sources and diff them against the snapshot.

        Returns:
            The change records of this cycle. The snapshot already reflects
            them when this returns.
        """
        self._state = SchedulerState.POLLING
        self._logger.debug("poll_started", paths=len(self._snapshot))
        resolution = self._resolver.resolve()

        self._state = SchedulerState.DIFFING
        records = diff(resolution, self._snapshot)
        for record in records:
            self._logger.info(
                "change_detected",
                kind=record.kind.value,
                path=record.path,
                mtime_ns=record.mtime_ns,
            )
        return records

    def execute(self, records: Sequence[ChangeRecord]) -> list[CommandResult]:
        """Run the command once per record, in order.

        Failures are logged and never retried. A stop request is honored
        between two records.

        Args:
            records: The change records of one cycle.

        Returns:
            The results of the commands that were run.
        """
        self._state = SchedulerState.EXECUTING
        results: list[CommandResult] = []
        for record in records:
            if self.stopped:
                break
            results.append(self._execute_one(record))
        return results

    def _execute_one(self, record: ChangeRecord) -> CommandResult:
        argv = self._template.render(record)
        log = self._logger.bind(kind=record.kind.value, path=record.path)
        log.info("command_started", argv=argv)

        result = self._runner(argv, self._command_config)

        if result.stdout or result.stderr:
            log.debug(
                "command_output",
                stdout=truncate_output(result.stdout, LOGGED_OUTPUT_BYTES),
                stderr=truncate_output(result.stderr, LOGGED_OUTPUT_BYTES),
            )
        if result.failed:
            log.error(
                "command_failed",
                argv=list(result.argv),
                exit_code=result.exit_code,
                error=result.error,
                timed_out=result.timed_out,
                command_not_found=result.command_not_found,
            )
        else:
            log.info("command_finished", exit_code=result.exit_code)
        return result

    def run_cycle(self) -> float:
        """Run one poll cycle without sleeping.

        Returns:
            Seconds to sleep before the next cycle: ``sleep`` if the command
            ran, ``interval`` otherwise.
        """
        records = self.poll()
        if not records:
            self._state = SchedulerState.IDLE
            if self._idle_cycles == 0:
                self._logger.info("no_changes", paths=len(self._snapshot))
            else:
                self._logger.debug("still_unchanged", idle_cycles=self._idle_cycles)
            self._idle_cycles += 1
            return self._interval

        self._idle_cycles = 0
        _ = self.execute(records)
        return self._sleep

    def _pause(self, seconds: float, reason: str) -> bool:
        """Sleep for ``seconds`` unless stopped.

        Returns:
            True if the loop should keep running.
        """
        self._state = SchedulerState.SLEEPING
        self._logger.debug("sleeping", seconds=seconds, reason=reason)
        return not self._stop_event.wait(seconds)

    def run(self, *, max_cycles: int | None = None) -> None:
        """Run the watch loop.

        Records the baseline, waits ``interval``, then repeats poll cycles
        until ``stop()`` is called. The trailing sleep is skipped once
        ``max_cycles`` comparisons have run.

        Args:
            max_cycles: Number of comparison cycles to run. None runs until
                stopped.
        """
        self._logger.info(
            "watch_started",
            sources=[str(source) for source in self._resolver.sources],
            command=list(self._template.argv),
            interval=self._interval,
            sleep=self._sleep,
            uses_variables=self._template.uses_variables,
        )
        try:
            self.baseline()
            cycles = 0
            keep_running = self._pause(self._interval, "baseline")
            while keep_running and (max_cycles is None or cycles < max_cycles):
                delay = self.run_cycle()
                cycles += 1
                if self.stopped or (max_cycles is not None and cycles >= max_cycles):
                    break
                reason = "idle" if self._state is SchedulerState.IDLE else "debounce"
                keep_running = self._pause(delay, reason)
        finally:
            self._state = SchedulerState.STOPPED
            self._logger.info("watch_stopped")


@contextlib.contextmanager
def stop_on_signals(
    scheduler: Scheduler,
    signals: Sequence[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[None]:
    """Stop ``scheduler`` when one of ``signals`` is received.

    Previous handlers are restored on exit. Must be used from the main thread.

    Args:
        scheduler: The scheduler to stop.
        signals: Signals that request an orderly stop.
    """

    def handle(_signum: int, _frame: object) -> None:
        scheduler.stop()

    previous = {signum: signal.signal(signum, handle) for signum in signals}
    try:
        yield
    finally:
        for signum, handler in previous.items():
            _ = signal.signal(signum, handler)
