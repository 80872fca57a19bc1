"""
Runtime Module - Black Box Interface

Purpose: Run WASI modules as workloads on dedicated worker threads
Interface: WasiRuntime, ContainerHandle, ModuleConfig, status_channel()
Hidden: wasmtime store ownership, linking, exec dispatch, output capture

The wasmtime engine can be swapped for another WebAssembly runtime that
offers instantiate, call and interrupt primitives.
"""

from .handle import ContainerHandle, WorkloadHandle
from .output import CapturedOutput, HandleFactory
from .status import Running, Status, StatusReceiver, StatusSender, Terminated, status_channel
from .wasi_runtime import WasiRuntime
from .worker import ModuleConfig

__all__ = [
    "CapturedOutput",
    "ContainerHandle",
    "HandleFactory",
    "ModuleConfig",
    "Running",
    "Status",
    "StatusReceiver",
    "StatusSender",
    "Terminated",
    "WasiRuntime",
    "WorkloadHandle",
    "status_channel",
]
