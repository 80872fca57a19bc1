"""
Handles on a running workload.

A WorkloadHandle is the async-side view of one worker thread: it can
interrupt the module, wait for the worker to finish and forward exec
commands. A ContainerHandle adds access to the captured output.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future

from wasilet.modules.exec import Command
from wasilet.modules.runtime.channel import ExecChannel
from wasilet.modules.runtime.output import HandleFactory
from wasilet.modules.runtime.worker import InterruptHandle

logger = logging.getLogger("wasilet.runtime.handle")


class WorkloadHandle:
    """Controls one module worker thread."""

    def __init__(
        self,
        thread: threading.Thread,
        done: Future,
        interrupt: InterruptHandle,
        channel: ExecChannel,
    ):
        self._thread = thread
        self._done = done
        self._interrupt = interrupt
        self._channel = channel
        # one exec in flight at a time, responses come back in request order
        self._send_lock = asyncio.Lock()
        self._recv_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._thread.name

    async def stop(self) -> None:
        """
        Interrupt the running module.

        The module traps at its next epoch checkpoint. The exec channel is
        closed as well so an idle command-serving worker exits.
        """
        logger.debug("stopping workload thread %s", self._thread.name)
        self._interrupt.interrupt()
        self._channel.close_sender()

    async def wait(self) -> None:
        """
        Wait for the worker thread to finish.

        Safe to call more than once; every call sees the same outcome.

        Raises:
            WasiletError: The error that ended the worker
        """
        await asyncio.wrap_future(self._done)

    async def exec(self, command: Command) -> str:
        """
        Run an exported function in the workload and return its output.

        Raises:
            ChannelError: The workload does not accept exec commands
            ExportLookupError: No such exported function
            ArgumentError: Bad arguments for the function
            ExecutionError: The function trapped
        """
        async with self._send_lock:
            request = self._channel.send(command)
            async with self._recv_lock:
                return await asyncio.wrap_future(request.reply)


class ContainerHandle:
    """A workload handle together with access to its captured output."""

    def __init__(self, handle: WorkloadHandle, handle_factory: HandleFactory):
        self._handle = handle
        self._handle_factory = handle_factory

    @property
    def name(self) -> str:
        return self._handle.name

    async def stop(self) -> None:
        await self._handle.stop()

    async def wait(self) -> None:
        await self._handle.wait()

    async def exec(self, command: Command) -> str:
        return await self._handle.exec(command)

    async def output(self, sender) -> None:
        """
        Stream everything captured so far into a log sender.

        Args:
            sender: Object with an async ``send(bytes)`` method
        """
        data = await asyncio.to_thread(self._read_output)
        await sender.send(data)

    def _read_output(self) -> bytes:
        with self._handle_factory.new_handle() as handle:
            return handle.read()
