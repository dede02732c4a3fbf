from aiortc import RTCPeerConnection
from functools import partial
import asyncio
import logging

logger = logging.getLogger(__name__)


class PollingTask:
    """
    Calls `func` over and over with `delay` seconds between calls.

    Replaces a self-rescheduling setTimeout: the next call is scheduled only
    after the previous one returned, only while `func` returns True, and only
    while `is_current(generation)` still holds.
    """

    def __init__(self, func, delay, generation, is_current):
        self.func = func
        self.delay = delay
        self.generation = generation
        self.is_current = is_current
        self._cancelled = False
        self._sleeping = False
        self._task = None

    def start(self):
        self._task = asyncio.create_task(self._run())
        return self

    @property
    def done(self):
        return self._task is not None and self._task.done()

    def _should_continue(self):
        return not self._cancelled and self.is_current(self.generation)

    async def _run(self):
        while self._should_continue():
            try:
                keep_going = await self.func()
            except Exception:
                logger.exception("polling iteration failed")
                keep_going = True
            if not keep_going or not self._should_continue():
                return
            self._sleeping = True
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                return
            finally:
                self._sleeping = False

    def cancel(self):
        # an iteration already running is left alone; only the next one is suppressed
        self._cancelled = True
        if self._task is not None and self._sleeping:
            self._task.cancel()

    async def wait(self):
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)


def spawn(coro, tasks: set, description):
    """
    Runs `coro` detached. Failures are logged, never raised.
    """
    task = asyncio.ensure_future(coro)
    tasks.add(task)
    task.add_done_callback(partial(_on_detached_task_done, tasks, description))
    return task

def _on_detached_task_done(tasks, description, task):
    tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("%s failed: %s", description, error)


def add_connection_state_handler(peer_connection: RTCPeerConnection, username):
    peer_connection.add_listener("iceconnectionstatechange", partial(_on_ice_connection_state_change, peer_connection, username))

def _on_ice_connection_state_change(peer_connection: RTCPeerConnection, username):
    state = peer_connection.iceConnectionState
    if state == "disconnected" or state == "failed":
        logger.warning("ice connection %s for %s", state, username)
    else:
        logger.info("ice connection %s for %s", state, username)
