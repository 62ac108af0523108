"""
Background poller - runs discovery, collection and archival for one switch.

Everything SNMP-related lives on a single asyncio event loop in a daemon
thread: discovery at start, then two periodic tasks (collect every
collect_interval seconds, write every write_interval seconds) sharing the
Metrics lock.
"""
import asyncio
import logging
import os
import time
from concurrent.futures import Future
from threading import Thread, Event
from typing import Callable, List, Optional

from .archive import ArchiveWriter
from .config import MetricConfig, Settings
from .errors import CounterTypeError
from .metrics import Metrics
from .snmp_client import SwitchSNMP

logger = logging.getLogger(__name__)

# Collection starts on a clean boundary within the minute
COLLECT_ALIGN_SECONDS = 10


def _exit_process(exc: BaseException):
    logger.critical(f"Fatal collector error, exiting: {exc}")
    os._exit(1)


def seconds_until_boundary(now: float, boundary: int = COLLECT_ALIGN_SECONDS) -> float:
    remainder = now % boundary
    return 0.0 if remainder == 0 else boundary - remainder


class SwitchPoller:

    def __init__(
        self,
        settings: Settings,
        metrics_config: List[MetricConfig],
        snmp: Optional[SwitchSNMP] = None,
        on_fatal: Callable[[BaseException], None] = _exit_process,
        align: bool = True,
    ):
        self.settings = settings
        self.metrics_config = metrics_config
        self.snmp = snmp or SwitchSNMP(
            settings.target,
            settings.community,
            port=settings.snmp_port,
            timeout=settings.snmp_timeout,
            retries=settings.snmp_retries,
        )
        self.on_fatal = on_fatal
        self.align = align

        self.metrics: Optional[Metrics] = None

        # Threading for background polling
        self.running = False
        self.thread: Optional[Thread] = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_ready = Event()
        self._tasks: List[asyncio.Task] = []

        logger.info(f"Switch poller initialized for {settings.target}")

    def start(self):
        """
        Start the polling thread and block until interface discovery is done.

        Raises:
            DiscoError: if the SNMP session or interface discovery fails
        """
        if self.running:
            logger.warning("Poller already running")
            return

        self._loop_ready.clear()
        self.thread = Thread(target=self._run_loop, name="disco-poller", daemon=True)
        self.thread.start()
        self._loop_ready.wait()

        future: Future = asyncio.run_coroutine_threadsafe(self._bootstrap(), self.loop)
        try:
            future.result()
        except BaseException:
            self._stop_loop()
            raise

        self.running = True
        logger.info("Switch poller started")

    def stop(self):
        """Stop the polling thread once any in-flight cycle has finished."""
        self.running = False
        self._stop_loop()
        logger.info("Switch poller stopped")

    def _stop_loop(self):
        if self.loop and self.loop.is_running():
            asyncio.run_coroutine_threadsafe(self._shutdown(), self.loop)
        if self.thread:
            self.thread.join(timeout=10)
        self.thread = None

    async def _shutdown(self):
        # Holding the lock lets a running collect or write complete first
        if self.metrics is not None:
            async with self.metrics.lock:
                self._cancel_tasks()
        else:
            self._cancel_tasks()
        self.snmp.close()
        # Give tasks a chance to unwind before stopping
        self.loop.call_later(0.1, self.loop.stop)

    def _cancel_tasks(self):
        for task in self._tasks:
            task.cancel()
        self._tasks = []

    def _run_loop(self):
        """Run the event loop in the background thread."""
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self._loop_ready.set()
        try:
            self.loop.run_forever()
        finally:
            self.loop.close()

    async def _bootstrap(self):
        await self.snmp.connect()
        self.metrics = await Metrics.create(
            self.snmp,
            self.metrics_config,
            self.settings.target,
            self.settings.hostname,
            archive=ArchiveWriter(self.settings.data_dir, self.settings.hostname),
        )
        self._tasks = [
            asyncio.create_task(self._collect_loop(), name="collect"),
            asyncio.create_task(self._write_loop(), name="write"),
        ]

    async def _collect_loop(self):
        if self.align:
            await asyncio.sleep(seconds_until_boundary(time.time()))

        interval = self.settings.collect_interval
        next_tick = time.monotonic()
        while True:
            try:
                await self.metrics.collect(self.snmp)
            except asyncio.CancelledError:
                logger.debug("Collect loop cancelled during shutdown")
                raise
            except CounterTypeError as e:
                self._fatal(e)
                return
            except Exception as e:
                logger.exception(f"Error in collect loop: {e}")

            next_tick += interval
            sleep_time = next_tick - time.monotonic()
            if sleep_time < 0:
                logger.warning(f"Collect cycle overran its {interval}s interval by {-sleep_time:.1f}s")
                next_tick = time.monotonic()
                sleep_time = 0
            await asyncio.sleep(sleep_time)

    async def _write_loop(self):
        interval = self.settings.write_interval
        while True:
            await asyncio.sleep(interval)
            try:
                await self.metrics.write(interval)
            except asyncio.CancelledError:
                logger.debug("Write loop cancelled during shutdown")
                raise
            except Exception as e:
                logger.exception(f"Error in write loop: {e}")

    def _fatal(self, exc: BaseException):
        self.running = False
        self.on_fatal(exc)

    def status(self) -> dict:
        return {
            "poller_running": self.running,
            "collect_interval": self.settings.collect_interval,
            "write_interval": self.settings.write_interval,
            **(self.metrics.status() if self.metrics else {}),
        }
