"""Driver scaffold providing pacing, timer scheduling and run control."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import heapq
import logging
import time
from typing import Awaitable, Callable, List, Optional, TYPE_CHECKING

from chip8emu.chip8.timers import TIMER_FREQUENCY_HZ
from chip8emu.cpu.cpu import StepStatus

if TYPE_CHECKING:
    from chip8emu.chip8.computer import RunHandle
else:  # pragma: no cover - used for runtime only
    RunHandle = object

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTIONS_PER_SECOND = 500.0
DEFAULT_MAX_BATCH = 64


class TimeManager:
    """Tracks wall-clock alignment against the emulated clock."""

    def __init__(self, clock: Callable[[], int] = time.perf_counter_ns) -> None:
        self._clock = clock
        self._base_time_ns = clock()

    def now(self) -> int:
        return self._clock()

    def reset(self, clock_count: int, frequency_hz: float) -> int:
        now = self._clock()
        if frequency_hz <= 0:
            self._base_time_ns = now
        else:
            simulated_offset = int((clock_count / frequency_hz) * 1_000_000_000)
            self._base_time_ns = now - simulated_offset
        return self._base_time_ns

    def base_time(self) -> int:
        return self._base_time_ns


@dataclass(order=True)
class _DriverEvent:
    clock: int
    order: int
    handler: Callable[["Driver"], None] = field(compare=False)
    name: str = field(default="", compare=False)

    def apply(self, driver: "Driver") -> None:
        self.handler(driver)


class EventQueue:
    """Priority queue of events keyed by emulated clock count."""

    def __init__(self) -> None:
        self._heap: List[_DriverEvent] = []

    def add(self, event: _DriverEvent) -> None:
        heapq.heappush(self._heap, event)

    def pop_ready(self, clock: int) -> List[_DriverEvent]:
        ready: List[_DriverEvent] = []
        while self._heap and self._heap[0].clock <= clock:
            ready.append(heapq.heappop(self._heap))
        return ready

    def clear(self) -> None:
        self._heap.clear()

    def __len__(self) -> int:
        return len(self._heap)


class Driver:
    """Host-side pacing loop around a :class:`RunHandle`.

    One executed ``step()`` counts as one clock. The delay and sound timers
    are ticked every ``instructions_per_second / timer_frequency`` clocks,
    so they run at 60 Hz of emulated time regardless of how fast the host
    calls :meth:`tick`. :meth:`run` and :meth:`run_for` additionally align
    emulated time with the wall clock.
    """

    STATUS_RUNNING = 0
    STATUS_PAUSED = 1
    STATUS_STOPPED = 2

    def __init__(
        self,
        handle: RunHandle,
        *,
        instructions_per_second: float = DEFAULT_INSTRUCTIONS_PER_SECOND,
        timer_frequency: float = TIMER_FREQUENCY_HZ,
        frame_callback: Optional[Callable[["Driver"], None]] = None,
        refresh_rate: float = 1.0 / 60.0,
        clock: Callable[[], int] = time.perf_counter_ns,
    ) -> None:
        if instructions_per_second <= 0:
            raise ValueError("instructions_per_second must be positive")
        if timer_frequency <= 0:
            raise ValueError("timer_frequency must be positive")
        if refresh_rate <= 0:
            raise ValueError("refresh_rate must be positive")
        self.handle = handle
        self.instructions_per_second = instructions_per_second
        self.timer_frequency = timer_frequency
        self.refresh_rate = refresh_rate
        self.frame_callback = frame_callback
        self.clock_count: int = 0
        self.last_status: Optional[StepStatus] = None
        self._running_status: int = self.STATUS_STOPPED
        self._event_queue = EventQueue()
        self._event_counter = 0
        self._time_manager = TimeManager(clock)
        self._timer_interval_clocks = 1
        self._refresh_interval_clocks = 1
        self._timer_active: bool = False
        self._frame_active: bool = False
        self._update_intervals()
        self.base_time = self._time_manager.reset(self.clock_count, self.instructions_per_second)

    def _update_intervals(self) -> None:
        self._timer_interval_clocks = max(1, round(self.instructions_per_second / self.timer_frequency))
        self._refresh_interval_clocks = max(1, round(self.instructions_per_second * self.refresh_rate))

    @property
    def timer_interval_clocks(self) -> int:
        return self._timer_interval_clocks

    @property
    def cycle_period(self) -> float:
        return 1.0 / self.instructions_per_second

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def tick(self, cycles: int) -> Optional[StepStatus]:
        """Execute up to ``cycles`` steps and fire due events.

        Stops early when the program halts or the handle goes stale. Steps
        that report ``AwaitingKey`` still consume a clock, so timers keep
        counting down while the program waits for input.
        """

        executed = 0
        while executed < cycles:
            self._process_events()
            if self._running_status != self.STATUS_RUNNING:
                break
            if not self.handle.is_current:
                logger.info("run handle for generation %d is stale; stopping", self.handle.generation)
                self._apply_power_off()
                break
            status = self.handle.step()
            self.clock_count += 1
            executed += 1
            self.last_status = status
            if status.is_halted:
                self._apply_power_off()
                break
        self._process_events()
        return self.last_status

    def cycles_due(self) -> int:
        elapsed_ns = self._time_manager.now() - self.base_time
        target = int(elapsed_ns * self.instructions_per_second / 1_000_000_000)
        return max(0, target - self.clock_count)

    def run_for(
        self,
        seconds: float,
        *,
        max_batch: int = DEFAULT_MAX_BATCH,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Optional[StepStatus]:
        """Run in real time for ``seconds`` or until halted/stopped."""

        if self._running_status == self.STATUS_STOPPED:
            self.power_on()
        deadline = time.monotonic() + seconds
        while self._running_status != self.STATUS_STOPPED and time.monotonic() < deadline:
            due = self.cycles_due() if self._running_status == self.STATUS_RUNNING else 0
            if due:
                self.tick(min(due, max_batch))
            else:
                sleep(self.cycle_period)
        return self.last_status

    async def run(
        self,
        *,
        max_batch: int = DEFAULT_MAX_BATCH,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> Optional[StepStatus]:
        """Cooperative run loop; yields to the event loop between batches.

        Returns the final status once the program halts, the driver is
        powered off, or the handle is replaced by a reload.
        """

        if self._running_status == self.STATUS_STOPPED:
            self.power_on()
        while self._running_status != self.STATUS_STOPPED:
            due = self.cycles_due() if self._running_status == self.STATUS_RUNNING else 0
            if due:
                self.tick(min(due, max_batch))
                await sleep(0)
            else:
                await sleep(self.cycle_period)
        return self.last_status

    # ------------------------------------------------------------------
    # Control lifecycle
    # ------------------------------------------------------------------
    def power_on(self) -> None:
        self._running_status = self.STATUS_RUNNING
        self.base_time = self._time_manager.reset(self.clock_count, self.instructions_per_second)
        self._start_periodic_tasks()

    def power_off(self) -> None:
        if self._running_status == self.STATUS_STOPPED:
            return
        self._schedule_event(lambda drv: drv._apply_power_off(), name="powerOff")

    def pause(self) -> None:
        if self._running_status != self.STATUS_RUNNING:
            return
        self._schedule_event(lambda drv: drv._apply_pause(), name="pause")

    def resume(self) -> None:
        if self._running_status != self.STATUS_PAUSED:
            return
        self._schedule_event(lambda drv: drv._apply_resume(), name="resume")

    def get_running_status(self) -> int:
        return self._running_status

    @property
    def is_running(self) -> bool:
        return self._running_status == self.STATUS_RUNNING

    def set_instructions_per_second(self, frequency: float) -> None:
        if frequency <= 0:
            raise ValueError("frequency must be positive")
        self.instructions_per_second = frequency
        self.base_time = self._time_manager.reset(self.clock_count, self.instructions_per_second)
        self._update_intervals()
        if self._running_status == self.STATUS_RUNNING:
            self._stop_periodic_tasks()
            self._event_queue.clear()
            self._start_periodic_tasks()

    # ------------------------------------------------------------------
    # Event dispatch helpers
    # ------------------------------------------------------------------
    def _process_events(self) -> None:
        for event in self._event_queue.pop_ready(self.clock_count):
            event.apply(self)

    def _schedule_event(self, handler: Callable[["Driver"], None], delay_cycles: int = 0, *, name: str = "") -> None:
        event_clock = max(self.clock_count + max(delay_cycles, 0), 0)
        event = _DriverEvent(event_clock, self._event_counter, handler, name)
        self._event_counter += 1
        self._event_queue.add(event)
        if event_clock <= self.clock_count:
            self._process_events()

    def _apply_pause(self) -> None:
        if self._running_status != self.STATUS_RUNNING:
            return
        self._running_status = self.STATUS_PAUSED

    def _apply_resume(self) -> None:
        if self._running_status == self.STATUS_RUNNING:
            return
        self._running_status = self.STATUS_RUNNING
        self.base_time = self._time_manager.reset(self.clock_count, self.instructions_per_second)

    def _apply_power_off(self) -> None:
        self._running_status = self.STATUS_STOPPED
        self._stop_periodic_tasks()
        self._event_queue.clear()

    def _start_periodic_tasks(self) -> None:
        if self._running_status != self.STATUS_RUNNING:
            return
        if not self._timer_active:
            self._timer_active = True
            self._schedule_event(self._timer_event, self._timer_interval_clocks, name="timers.tick")
        if not self._frame_active and self.frame_callback is not None:
            self._frame_active = True
            self._schedule_event(self._frame_event, self._refresh_interval_clocks, name="display.refresh")

    def _stop_periodic_tasks(self) -> None:
        self._timer_active = False
        self._frame_active = False

    def _timer_event(self, drv: "Driver") -> None:
        if not drv._timer_active or drv._running_status == drv.STATUS_STOPPED:
            return
        drv.handle.tick_timers()
        drv._schedule_event(drv._timer_event, drv._timer_interval_clocks, name="timers.tick")

    def _frame_event(self, drv: "Driver") -> None:
        if not drv._frame_active or drv._running_status == drv.STATUS_STOPPED:
            return
        if drv.frame_callback is not None:
            drv.frame_callback(drv)
        drv._schedule_event(drv._frame_event, drv._refresh_interval_clocks, name="display.refresh")


__all__ = [
    "DEFAULT_INSTRUCTIONS_PER_SECOND",
    "Driver",
    "EventQueue",
    "TimeManager",
]
