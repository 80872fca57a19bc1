"""
WASI runtime: starts one module on its own worker thread.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future

from wasilet.modules.runtime.channel import ExecChannel
from wasilet.modules.runtime.handle import ContainerHandle, WorkloadHandle
from wasilet.modules.runtime.output import CapturedOutput, HandleFactory, OutputPump
from wasilet.modules.runtime.status import StatusSender
from wasilet.modules.runtime.worker import InterruptHandle, ModuleConfig, ModuleWorker

logger = logging.getLogger("wasilet.runtime")


class WasiRuntime:
    """
    Runtime for one WASI module.

    Use ``WasiRuntime.new`` to build one; the constructor expects an
    already created output sink.
    """

    def __init__(self, name: str, data: ModuleConfig, output: CapturedOutput,
                 status_sender: StatusSender):
        self.name = name
        self._data = data
        self._output = output
        self._status_sender = status_sender

    @classmethod
    async def new(cls, name: str, data: ModuleConfig, log_dir: str,
                  status_sender: StatusSender) -> "WasiRuntime":
        """
        Create a runtime with a fresh captured-output file in ``log_dir``.

        Args:
            name: Workload name used for threads and log lines
            data: Module bytes, environment, args and mounts
            log_dir: Directory that holds the captured output
            status_sender: Where lifecycle events are reported
        """
        output = await asyncio.to_thread(CapturedOutput, log_dir)
        return cls(name, data, output, status_sender)

    @property
    def output(self) -> CapturedOutput:
        return self._output

    async def start(self) -> ContainerHandle:
        """
        Start the module on a dedicated thread.

        Returns once the worker has handed over its interrupt capability,
        before any module code runs.

        Raises:
            WasiletError: The worker failed before it could be interrupted
        """
        pump = OutputPump(self._output, self.name)
        pump.start()

        channel = ExecChannel()
        interrupt_ready: Future = Future()
        done: Future = Future()
        worker = ModuleWorker(
            self.name, self._data, pump, self._status_sender, channel, interrupt_ready
        )

        thread = threading.Thread(
            target=_run_worker, args=(worker, done), name=f"wasilet-{self.name}", daemon=True
        )
        logger.debug("Starting worker thread for %s", self.name)
        thread.start()

        interrupt: InterruptHandle = await asyncio.wrap_future(interrupt_ready)
        handle = WorkloadHandle(thread, done, interrupt, channel)
        return ContainerHandle(handle, HandleFactory(self._output))


def _run_worker(worker: ModuleWorker, done: Future) -> None:
    done.set_running_or_notify_cancel()
    try:
        worker.run()
    except BaseException as e:
        done.set_exception(e)
    else:
        done.set_result(None)
