"""
Shared pytest fixtures for Wasilet tests.

This module provides common fixtures including:
- WebAssembly text sources for the module shapes the worker handles
- start_workload: start a real module on a worker thread, stopped at teardown
- FakeProvider: canned exec/logs responses for webserver tests
"""

import asyncio
import os
import sys
from dataclasses import dataclass, field
from typing import Any, List, Optional

import pytest
import pytest_asyncio
from wasmtime import wat2wasm

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from wasilet.modules.runtime import (
    ContainerHandle,
    ModuleConfig,
    StatusReceiver,
    WasiRuntime,
    status_channel,
)


# =============================================================================
# Module Sources
# =============================================================================

# No _start export: serves exec commands
COMMAND_MODULE = """
(module
  (global $count (mut i32) (i32.const 0))
  (func (export "add") (param i32 i32) (result i32)
    local.get 0
    local.get 1
    i32.add)
  (func (export "pair") (result i32 i32)
    i32.const 1
    i32.const 2)
  (func (export "half") (param f32) (result f32)
    local.get 0
    f32.const 2
    f32.div)
  (func (export "widen") (param i64 f64) (result f64)
    local.get 0
    f64.convert_i64_s
    local.get 1
    f64.add)
  (func (export "next") (result i32)
    global.get $count
    i32.const 1
    i32.add
    global.set $count
    global.get $count)
  (func (export "boom")
    unreachable)
  (func (export "spin")
    (loop $again
      br $again))
)
"""


def _hello_module(abi: str) -> str:
    return f"""
(module
  (import "{abi}" "fd_write" (func $fd_write (param i32 i32 i32 i32) (result i32)))
  (memory (export "memory") 1)
  (data (i32.const 16) "hello\\n")
  (data (i32.const 32) "oops\\n")
  (func (export "_start")
    (i32.store (i32.const 0) (i32.const 16))
    (i32.store (i32.const 4) (i32.const 6))
    (drop (call $fd_write (i32.const 1) (i32.const 0) (i32.const 1) (i32.const 8)))
    (i32.store (i32.const 0) (i32.const 32))
    (i32.store (i32.const 4) (i32.const 5))
    (drop (call $fd_write (i32.const 2) (i32.const 0) (i32.const 1) (i32.const 8))))
)
"""


# _start writes "hello\n" to stdout, then "oops\n" to stderr
HELLO_MODULE = _hello_module("wasi_snapshot_preview1")
LEGACY_HELLO_MODULE = _hello_module("wasi_unstable")

SPIN_MODULE = """
(module
  (func (export "_start")
    (loop $again
      br $again))
)
"""

EXIT_MODULE = """
(module
  (import "wasi_snapshot_preview1" "proc_exit" (func $exit (param i32)))
  (memory (export "memory") 1)
  (func (export "_start")
    (call $exit (i32.const {code})))
)
"""

START_TRAP_MODULE = """
(module
  (func $init
    unreachable)
  (start $init)
)
"""

UNKNOWN_NAMESPACE_MODULE = """
(module
  (import "env" "missing" (func))
)
"""

UNKNOWN_SYMBOL_MODULE = """
(module
  (import "wasi_snapshot_preview1" "not_a_wasi_call" (func))
)
"""


# =============================================================================
# Workload Fixtures
# =============================================================================

@dataclass
class StartedWorkload:
    """A module started on its worker thread for a test."""
    runtime: WasiRuntime
    handle: ContainerHandle
    receiver: StatusReceiver

    async def statuses(self, timeout: float = 10.0) -> List[Any]:
        """Collect every status up to and including the Terminated."""
        async def collect():
            return [status async for status in self.receiver]
        return await asyncio.wait_for(collect(), timeout)


def module_bytes(source) -> bytes:
    return wat2wasm(source) if isinstance(source, str) else source


@pytest_asyncio.fixture
async def start_workload(tmp_path):
    """
    Start real modules and make sure every worker is stopped afterwards.

    Usage:
        async def test_something(start_workload):
            workload = await start_workload(COMMAND_MODULE)
            assert await workload.handle.exec(Command.parse("add 1 2")) == "3"
    """
    started: List[ContainerHandle] = []

    async def _start(source, env=None, args=(), mounts=None, maxsize=32) -> StartedWorkload:
        sender, receiver = status_channel("test", maxsize=maxsize, send_timeout=0.05)
        config = ModuleConfig(
            module_bytes=module_bytes(source),
            env=env or {},
            args=args,
            directory_mounts=mounts or {},
        )
        runtime = await WasiRuntime.new("test", config, str(tmp_path), sender)
        handle = await runtime.start()
        started.append(handle)
        return StartedWorkload(runtime, handle, receiver)

    yield _start

    for handle in started:
        await handle.stop()
        try:
            await asyncio.wait_for(handle.wait(), 10)
        except Exception:
            pass


# =============================================================================
# Provider Fakes
# =============================================================================

@dataclass
class FakeProvider:
    """Provider with canned exec and logs behaviour."""
    exec_result: str = "42"
    exec_error: Optional[Exception] = None
    logs_data: bytes = b""
    logs_error: Optional[Exception] = None
    exec_calls: List[tuple] = field(default_factory=list)

    async def exec(self, namespace, pod, container, options):
        self.exec_calls.append((namespace, pod, container, options))
        if self.exec_error is not None:
            raise self.exec_error
        return self.exec_result

    async def logs(self, namespace, pod, container, sink):
        if self.logs_error is not None:
            raise self.logs_error
        await sink.send(self.logs_data)


@pytest.fixture
def fake_provider():
    return FakeProvider()


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "wasm: Tests that run real WebAssembly modules"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests through the full application"
    )
