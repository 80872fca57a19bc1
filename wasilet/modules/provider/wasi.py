"""
WASI provider: registry of running workloads keyed by namespace/pod/container.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from wasilet.exceptions import WasiletError, WorkloadNotFoundError
from wasilet.modules.exec import CommandOptions
from wasilet.modules.provider.base import LogSink
from wasilet.modules.runtime import (
    ContainerHandle,
    ModuleConfig,
    Running,
    Status,
    StatusReceiver,
    WasiRuntime,
    status_channel,
)

logger = logging.getLogger("wasilet.provider")

WorkloadKey = Tuple[str, str, str]


@dataclass
class Workload:
    """A started container and the latest status reported by its worker."""

    handle: ContainerHandle
    status: Optional[Status] = None
    tracker: Optional[asyncio.Task] = field(default=None, repr=False)


class WasiProvider:
    """Runs WASI workloads and serves exec and logs for them."""

    def __init__(self, log_dir: str, status_queue_size: int = 32,
                 status_send_timeout: float = 1.0):
        self.log_dir = log_dir
        self.status_queue_size = status_queue_size
        self.status_send_timeout = status_send_timeout
        self._workloads: Dict[WorkloadKey, Workload] = {}

    async def start_workload(
        self, namespace: str, pod: str, container: str, data: ModuleConfig
    ) -> ContainerHandle:
        """
        Start a module and register it under namespace/pod/container.

        Raises:
            ValueError: A workload with the same key is already registered
            WasiletError: The worker failed before it could be interrupted
        """
        key = (namespace, pod, container)
        if key in self._workloads:
            raise ValueError(f"Workload {'/'.join(key)} is already running")

        name = f"{namespace}:{pod}:{container}"
        sender, receiver = status_channel(
            name, self.status_queue_size, self.status_send_timeout
        )
        runtime = await WasiRuntime.new(name, data, self.log_dir, sender)
        handle = await runtime.start()

        workload = Workload(handle=handle)
        workload.tracker = asyncio.create_task(self._track_status(name, workload, receiver))
        self._workloads[key] = workload
        logger.info("Started workload %s", name)
        return handle

    async def stop_workload(self, namespace: str, pod: str, container: str) -> None:
        """
        Stop a workload, wait for its worker and forget it.

        Raises:
            WorkloadNotFoundError: Nothing is registered under the key
        """
        key = (namespace, pod, container)
        workload = self._workloads.pop(key, None)
        if workload is None:
            raise WorkloadNotFoundError(namespace, pod, container)

        await workload.handle.stop()
        try:
            await workload.handle.wait()
        except WasiletError as e:
            logger.info("Workload %s ended with error: %s", "/".join(key), e)
        if workload.tracker is not None:
            await workload.tracker

    def get_status(self, namespace: str, pod: str, container: str) -> Optional[Status]:
        """
        Latest status reported by a workload, None before its first report.

        Raises:
            WorkloadNotFoundError: Nothing is registered under the key
        """
        return self._get(namespace, pod, container).status

    def list_workloads(self) -> List[WorkloadKey]:
        return sorted(self._workloads)

    async def shutdown(self) -> None:
        """Stop every registered workload."""
        for key in list(self._workloads):
            await self.stop_workload(*key)

    async def exec(
        self, namespace: str, pod: str, container: str, options: CommandOptions
    ) -> str:
        workload = self._get(namespace, pod, container)
        return await workload.handle.exec(options.command)

    async def logs(self, namespace: str, pod: str, container: str, sink: LogSink) -> None:
        workload = self._get(namespace, pod, container)
        await workload.handle.output(sink)

    def _get(self, namespace: str, pod: str, container: str) -> Workload:
        workload = self._workloads.get((namespace, pod, container))
        if workload is None:
            raise WorkloadNotFoundError(namespace, pod, container)
        return workload

    async def _track_status(self, name: str, workload: Workload,
                            receiver: StatusReceiver) -> None:
        async for status in receiver:
            workload.status = status
            if isinstance(status, Running):
                logger.info("Workload %s is running", name)
            elif status.failed:
                logger.warning("Workload %s failed: %s", name, status.message)
            else:
                logger.info("Workload %s terminated: %s", name, status.message)
