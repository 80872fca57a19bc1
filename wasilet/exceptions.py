"""
Error taxonomy shared by all Wasilet modules.

Load, link and instantiate errors are fatal to a workload. Parse, lookup,
argument and execution errors are local to one exec call. Channel errors
surface to whoever was talking to a worker that is no longer listening.
"""


class WasiletError(Exception):
    """Base class for all Wasilet errors."""


class ParseError(WasiletError):
    """A command string or exec query string could not be parsed."""


class ExportLookupError(WasiletError):
    """The module has no exported function with the requested name."""

    def __init__(self, function: str):
        super().__init__(f"No function found with name {function}")
        self.function = function


class ArgumentError(WasiletError):
    """Exec arguments do not fit the export's parameter list."""


class ExecutionError(WasiletError):
    """A trap or fault happened while running module code."""


class ChannelError(WasiletError):
    """The peer end of a worker channel is gone."""


class ModuleLoadError(WasiletError):
    """The module binary is invalid or its environment could not be built."""


class LinkError(WasiletError):
    """A module import could not be resolved against the WASI tables."""


class InstantiateError(WasiletError):
    """The linked module failed to instantiate."""


class ProviderNotImplementedError(WasiletError):
    """The provider does not implement the requested operation."""


class WorkloadNotFoundError(WasiletError):
    """No workload is registered for the given namespace/pod/container."""

    def __init__(self, namespace: str, pod: str, container: str):
        super().__init__(
            f"No workload found for container {container} in pod {pod} "
            f"in namespace {namespace}"
        )
        self.namespace = namespace
        self.pod = pod
        self.container = container
