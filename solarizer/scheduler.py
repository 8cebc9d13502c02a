"""Dual-cadence import scheduler.

Two independent timers drive the import: the fast one fetches the power
flow, the slow one fetches earnings and the grid balance. Every tick spawns
its fetch-and-publish tasks and moves on; a tick never waits for the tasks
of an earlier tick, so overlapping runs are possible.

InfluxDB writes are synchronous; they run in worker threads so a slow sink
never stalls the event loop.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, NamedTuple, Optional, Set

from .errors import SolarWebError
from .influx_writer import InfluxWriter
from .solarweb_client import SolarWebClient

logger = logging.getLogger(__name__)


class Cadence(str, Enum):
    FAST = "fast"
    SLOW = "slow"


class ScheduleTick(NamedTuple):
    cadence: Cadence
    timestamp: datetime


class ImportScheduler:
    """Fans timer ticks out to fire-and-forget import tasks."""

    def __init__(
        self,
        client: SolarWebClient,
        writer: InfluxWriter,
        fast_interval: float = 15,
        slow_interval: float = 300,
    ):
        self.client = client
        self.writer = writer
        self.fast_interval = fast_interval
        self.slow_interval = slow_interval
        self._stop_event = asyncio.Event()
        # Strong references until done, otherwise the loop may drop running tasks
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        """Number of spawned import tasks that have not finished yet."""
        return len(self._tasks)

    def stop(self):
        """Stop both timers. Already spawned tasks keep running."""
        self._stop_event.set()

    async def run(self, stop_event: Optional[asyncio.Event] = None):
        """Run both timers until stopped.

        Args:
            stop_event: Cancellation signal; stop() sets whichever event is in use
        """
        if stop_event is not None:
            self._stop_event = stop_event
        stop = self._stop_event
        logger.info(
            f"Starting import loop (fast every {self.fast_interval}s, "
            f"slow every {self.slow_interval}s)"
        )
        await asyncio.gather(
            self._run_timer(Cadence.FAST, self.fast_interval, stop),
            self._run_timer(Cadence.SLOW, self.slow_interval, stop),
        )
        if self._tasks:
            logger.info(f"Import loop stopped, {len(self._tasks)} import tasks still running")
        else:
            logger.info("Import loop stopped")

    async def _run_timer(self, cadence: Cadence, interval: float, stop: asyncio.Event):
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + interval
        while not stop.is_set():
            delay = max(0.0, next_tick - loop.time())
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
                return
            except asyncio.TimeoutError:
                pass

            next_tick += interval
            # Ticks missed while the loop was busy are dropped, not replayed
            if next_tick <= loop.time():
                next_tick = loop.time() + interval

            self.fire(ScheduleTick(cadence, datetime.now(timezone.utc)))

    def fire(self, tick: ScheduleTick) -> List[asyncio.Task]:
        """Spawn the import tasks belonging to a tick."""
        if tick.cadence is Cadence.FAST:
            return self.run_fast_import()
        return self.run_slow_import()

    def run_fast_import(self) -> List[asyncio.Task]:
        logger.debug("Running fast import")
        return [self._spawn("power", self.write_power_data())]

    def run_slow_import(self) -> List[asyncio.Task]:
        logger.debug("Running slow import")
        return [
            self._spawn("earnings", self.write_earnings_data()),
            self._spawn("balance", self.write_balance_data()),
        ]

    def _spawn(self, name: str, coro) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"import-{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def write_power_data(self):
        """Fetch the power flow and publish it."""
        try:
            data = await self.client.get_power()
        except SolarWebError as e:
            logger.error(f"Error fetching power data: {e}")
            return
        except Exception as e:
            logger.exception(f"Unexpected error fetching power data: {e}")
            return
        await asyncio.to_thread(self.writer.write_power, data)

    async def write_earnings_data(self):
        """Fetch earnings and savings and publish them."""
        try:
            data = await self.client.get_earnings()
        except SolarWebError as e:
            logger.error(f"Error fetching earnings data: {e}")
            return
        except Exception as e:
            logger.exception(f"Unexpected error fetching earnings data: {e}")
            return
        await asyncio.to_thread(self.writer.write_earnings, data)

    async def write_balance_data(self):
        """Fetch the grid balance and publish it."""
        try:
            data = await self.client.get_balance()
        except SolarWebError as e:
            logger.error(f"Error fetching balance data: {e}")
            return
        except Exception as e:
            logger.exception(f"Unexpected error fetching balance data: {e}")
            return
        await asyncio.to_thread(self.writer.write_balance, data)
