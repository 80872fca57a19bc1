"""
Provider Module - Black Box Interface

Purpose: Run workloads and answer the kubelet callbacks for them
Interface: Provider, WasiProvider, LogOptions, LogSender, load_static_pods()
Hidden: Workload registry, status tracking, manifest parsing

Can be replaced with any backend that implements the Provider protocol.
"""

from .base import LogSink, Provider
from .logs import LogOptions, LogSender
from .static_pods import StaticContainer, load_manifest, load_static_pods
from .wasi import WasiProvider

__all__ = [
    "LogOptions",
    "LogSender",
    "LogSink",
    "Provider",
    "StaticContainer",
    "WasiProvider",
    "load_manifest",
    "load_static_pods",
]
