"""Provider interfaces used by the kubelet API."""
from typing import Protocol

from wasilet.modules.exec import CommandOptions


class LogSink(Protocol):
    """Receives captured workload output."""

    async def send(self, data: bytes) -> None:
        ...


class Provider(Protocol):
    """Protocol for workload providers - allows swappable backends."""

    async def exec(
        self, namespace: str, pod: str, container: str, options: CommandOptions
    ) -> str:
        """
        Run a command inside a container.

        Returns:
            The command output

        Raises:
            WasiletError: The command could not be run
        """
        ...

    async def logs(self, namespace: str, pod: str, container: str, sink: LogSink) -> None:
        """
        Stream a container's captured output into ``sink``.

        Raises:
            ProviderNotImplementedError: Log retrieval is not supported
            WasiletError: Any other failure
        """
        ...
