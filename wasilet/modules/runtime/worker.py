"""
Module execution worker.

A worker owns one wasmtime store and instance and runs on its own thread.
wasmtime stores are not safe to share between threads, so everything that
touches the store happens here; the outside world only gets an interrupt
handle (through a one-shot handoff) and the exec channel.

Lifecycle:
    Created -> Linking -> Instantiated -> Dispatching
Failures while loading, linking or instantiating end the worker with a
single failed Terminated status and no Running. Dispatching runs ``_start``
when the module exports it (entry-point mode); otherwise it serves exec
commands until the handle side closes the channel (command-serving mode).

Modules built against the legacy `wasi_unstable` ABI are linked to the
preview1 implementations of the same symbols. That is exact for most calls,
but a few changed their encoding between the two revisions, such as the
`fd_seek` whence values and the filestat layout. Those imports are reported
with a warning when the module links and behave with preview1 semantics.
"""

import logging
import traceback
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from wasmtime import (
    Config,
    Engine,
    ExitTrap,
    Func,
    Linker,
    Module,
    Store,
    Trap,
    WasiConfig,
    WasmtimeError,
)

from wasilet.exceptions import (
    ChannelError,
    ExecutionError,
    InstantiateError,
    LinkError,
    ModuleLoadError,
)
from wasilet.modules.runtime.channel import ExecChannel
from wasilet.modules.runtime.dispatch import dispatch_command
from wasilet.modules.runtime.output import OutputPump
from wasilet.modules.runtime.status import Running, StatusSender, Terminated

logger = logging.getLogger("wasilet.runtime.worker")

ENTRY_POINT = "_start"

# WASI ABI revisions a module may link against
CURRENT_ABI = "wasi_snapshot_preview1"
LEGACY_ABI = "wasi_unstable"

# legacy symbols whose argument or struct encoding differs from preview1
LEGACY_DIVERGENT_IMPORTS = frozenset({
    "fd_seek",
    "fd_filestat_get",
    "path_filestat_get",
    "poll_oneoff",
})

_STATUS_MESSAGES = (
    (ModuleLoadError, "unable to create module"),
    (LinkError, "unable to load module"),
    (InstantiateError, "unable to instantiate module"),
    (ExecutionError, "unable to run module"),
    (ChannelError, "Command channel closed"),
)


def _status_message(error: BaseException) -> str:
    for kind, message in _STATUS_MESSAGES:
        if isinstance(error, kind):
            return message
    return "module worker failed"


def legacy_divergent_imports(module: Module) -> List[str]:
    """Names of the legacy ABI imports that only link with preview1 semantics."""
    return sorted({
        item.name
        for item in module.imports
        if item.module == LEGACY_ABI and item.name in LEGACY_DIVERGENT_IMPORTS
    })


def _release_frames(error: BaseException) -> None:
    """
    Clear the locals of the frames an error and its explicit causes hold.

    Only call this on errors the worker still owns. Once an error has been
    delivered to the event loop its traceback also covers suspended caller
    coroutines, and clearing those frames would close them.
    """
    seen = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        traceback.clear_frames(error.__traceback__)
        error = error.__cause__


@dataclass(frozen=True, eq=False)
class ModuleConfig:
    """
    Immutable input of a worker.

    ``directory_mounts`` maps host paths to optional guest paths
    (e.g. /tmp/foo -> /app/config). Without a guest path the host path is
    exposed unchanged.
    """

    module_bytes: bytes
    env: Mapping[str, str] = field(default_factory=dict)
    args: Tuple[str, ...] = ()
    directory_mounts: Mapping[Path, Optional[Path]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "module_bytes", bytes(self.module_bytes))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(
            self,
            "directory_mounts",
            MappingProxyType({
                Path(host): (Path(guest) if guest is not None else None)
                for host, guest in self.directory_mounts.items()
            }),
        )


class InterruptHandle:
    """Best-effort cancellation of code running in a worker's store."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def interrupt(self) -> None:
        """Bump the engine epoch; running code traps at its next checkpoint."""
        self._engine.increment_epoch()


class ModuleWorker:
    """Drives one module instance through its lifecycle on the current thread."""

    def __init__(
        self,
        name: str,
        data: ModuleConfig,
        output_pump: OutputPump,
        status_sender: StatusSender,
        channel: ExecChannel,
        interrupt_ready: Future,
    ):
        self.name = name
        self._data = data
        self._pump = output_pump
        self._status = status_sender
        self._channel = channel
        self._interrupt_ready = interrupt_ready

    def run(self) -> None:
        """
        Run the module to completion.

        Always ends with exactly one Terminated status. Captured output is
        flushed before that status goes out.

        Raises:
            WasiletError: The error that ended the worker early
        """
        terminal = None
        try:
            self._execute()
            terminal = Terminated(failed=False, message="Module run completed")
        except Exception as e:
            message = _status_message(e)
            logger.error("%s: %s", message, e)
            terminal = Terminated(failed=True, message=message)
            # the store owns the output pipe; free it so the pump sees EOF.
            # Must happen before the error is handed to the event loop.
            _release_frames(e)
            if not self._interrupt_ready.done():
                self._interrupt_ready.set_exception(e)
            raise
        finally:
            self._channel.close_receiver()
            self._pump.finish()
            if terminal is not None:
                self._status.send(terminal)

    def _execute(self) -> None:
        engine, store = self._create_store()
        self._interrupt_ready.set_result(InterruptHandle(engine))

        self._configure_wasi(store)
        module = self._load_module(engine)
        linker = self._link(engine, store, module)
        instance = self._instantiate(linker, store, module)

        logger.info("starting run of module %s", self.name)
        self._status.send(Running())

        exports = instance.exports(store)
        entry_point = exports.get(ENTRY_POINT)
        if entry_point is not None:
            self._run_entry_point(store, entry_point)
        else:
            self._serve_commands(store, exports)

    def _create_store(self) -> Tuple[Engine, Store]:
        config = Config()
        config.epoch_interruption = True
        engine = Engine(config)
        store = Store(engine)
        # armed before the interrupt handle leaves this thread so no stop is lost
        store.set_epoch_deadline(1)
        return engine, store

    def _configure_wasi(self, store: Store) -> None:
        wasi = WasiConfig()
        wasi.argv = list(self._data.args)
        wasi.env = list(self._data.env.items())
        try:
            # two independent duplicates of the same sink
            wasi.stdout_file = self._pump.writer_path
            wasi.stderr_file = self._pump.writer_path
            for host_dir, guest_dir in self._data.directory_mounts.items():
                guest_dir = guest_dir or host_dir
                logger.debug("mounting hostpath %s as guestpath %s", host_dir, guest_dir)
                wasi.preopen_dir(str(host_dir), str(guest_dir))
            store.set_wasi(wasi)
        except WasmtimeError as e:
            raise ModuleLoadError(f"unable to build the WASI context: {e}") from e
        finally:
            self._pump.release_writer()

    def _load_module(self, engine: Engine) -> Module:
        try:
            return Module(engine, self._data.module_bytes)
        except WasmtimeError as e:
            raise ModuleLoadError(str(e)) from e

    def _link(self, engine: Engine, store: Store, module: Module) -> Linker:
        """
        Resolve every import against the two WASI ABI tables.

        The legacy table is served by the current implementation for each
        symbol the module asks for.
        """
        divergent = legacy_divergent_imports(module)
        if divergent:
            logger.warning(
                "module %s imports %s from %s; these run with %s semantics",
                self.name, ", ".join(divergent), LEGACY_ABI, CURRENT_ABI,
            )

        linker = Linker(engine)
        linker.define_wasi()
        legacy_defined = set()

        for item in module.imports:
            namespace, name = item.module, item.name
            if namespace not in (CURRENT_ABI, LEGACY_ABI):
                raise LinkError(f"import module `{namespace}` was not found")
            try:
                export = linker.get(store, CURRENT_ABI, name)
            except WasmtimeError as e:
                raise LinkError(f"import `{name}` was not found in module `{namespace}`") from e

            if namespace == LEGACY_ABI and name not in legacy_defined:
                try:
                    linker.define(store, LEGACY_ABI, name, export)
                except WasmtimeError as e:
                    raise LinkError(f"unable to define `{name}` in module `{namespace}`: {e}") from e
                legacy_defined.add(name)

        return linker

    def _instantiate(self, linker: Linker, store: Store, module: Module):
        try:
            return linker.instantiate(store, module)
        except (Trap, WasmtimeError) as e:
            raise InstantiateError(str(e)) from e

    def _run_entry_point(self, store: Store, entry_point) -> None:
        # Drop the channel so that any exec command fails
        self._channel.close_receiver()

        if not isinstance(entry_point, Func):
            raise ExecutionError(
                f"{ENTRY_POINT} export was not a function. This is likely a problem with the module"
            )

        try:
            entry_point(store)
        except ExitTrap as e:
            if e.code != 0:
                raise ExecutionError(f"module exited with code {e.code}") from e
        except (Trap, WasmtimeError) as e:
            raise ExecutionError(str(e)) from e

        logger.info("module run complete")

    def _serve_commands(self, store: Store, exports) -> None:
        logger.info("%s export doesn't exist in module %s, serving exec commands", ENTRY_POINT, self.name)

        while True:
            request = self._channel.recv()
            if request is None:
                raise ChannelError("Command channel dropped")
            if not request.begin():
                logger.debug("Exec command %s was cancelled before it ran", request.command)
                continue

            logger.info("Received exec command %s", request.command)
            result, error = None, None
            try:
                result = dispatch_command(store, exports, request.command)
            except Exception as e:
                logger.info("Exec command %s failed: %s", request.command, e)
                _release_frames(e)
                error = e

            # outside the except block so a reply failure is not chained to
            # the error the caller now owns
            self._channel.reply(request, result=result, error=error)
