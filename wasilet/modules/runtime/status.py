"""
Workload status events and the bounded channel that carries them.

A worker reports at most one Running followed by exactly one Terminated.
When a module never reaches execution the worker reports a single failed
Terminated and nothing else.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import AsyncIterator, Optional, Tuple, Union

logger = logging.getLogger("wasilet.runtime.status")


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Running:
    """The module has been instantiated and is running."""

    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class Terminated:
    """The module is no longer running."""

    failed: bool
    message: str
    timestamp: datetime = field(default_factory=_now)


Status = Union[Running, Terminated]


class StatusSender:
    """
    Worker-side end of a status channel.

    The channel holds at most ``maxsize`` undelivered statuses. Each one
    occupies a slot that the receiver frees once it has taken the status.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        channel: "asyncio.Queue[Status]",
        slots: threading.Semaphore,
        name: str,
        send_timeout: float,
    ):
        self._loop = loop
        self._channel = channel
        self._slots = slots
        self._name = name
        self._send_timeout = send_timeout

    def send(self, status: Status) -> None:
        """
        Deliver a status, blocking while the channel is full.

        Events are never dropped while the receiving loop is alive. Each
        blocked attempt waits up to ``send_timeout`` seconds before it is
        retried. Must not be called from the receiving loop's thread while
        the channel is full.
        """
        while not self._slots.acquire(timeout=self._send_timeout):
            logger.debug(
                "Channel for container %s not ready for send. Attempting again",
                self._name,
            )
        try:
            self._loop.call_soon_threadsafe(self._channel.put_nowait, status)
        except RuntimeError:
            self._slots.release()
            logger.warning(
                "Status receiver for container %s is gone, dropping %s",
                self._name,
                type(status).__name__,
            )


class StatusReceiver:
    """Async-side end of a status channel, consumed by a status tracker."""

    def __init__(self, channel: "asyncio.Queue[Status]", slots: threading.Semaphore):
        self._channel = channel
        self._slots = slots
        self._finished = False

    async def recv(self) -> Optional[Status]:
        """
        Wait for the next status.

        Cancelling a pending recv loses nothing; the status stays queued
        for the next call.

        Returns:
            The next status, or None once a Terminated has been received
        """
        if self._finished:
            return None
        status = await self._channel.get()
        self._slots.release()
        if isinstance(status, Terminated):
            self._finished = True
        return status

    def __aiter__(self) -> AsyncIterator[Status]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Status]:
        while True:
            status = await self.recv()
            if status is None:
                return
            yield status


def status_channel(
    name: str,
    maxsize: int = 32,
    send_timeout: float = 1.0,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> Tuple[StatusSender, StatusReceiver]:
    """
    Create a bounded status channel for the named container.

    The receiver belongs to ``loop``, the running loop by default, and
    waits on it without holding any thread. Senders may live on any thread.
    """
    if maxsize < 1:
        raise ValueError("status channel needs room for at least one status")
    if loop is None:
        loop = asyncio.get_running_loop()
    channel: "asyncio.Queue[Status]" = asyncio.Queue()
    slots = threading.Semaphore(maxsize)
    return (
        StatusSender(loop, channel, slots, name, send_timeout),
        StatusReceiver(channel, slots),
    )
