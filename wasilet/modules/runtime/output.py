"""
Captured module output.

A module's stdout and stderr both land in one append-only temp file. Readers
get their own independent file handles on demand. The file is removed once
the last owner (the runtime, the output pump, and every handle factory) has
been released.
"""

import logging
import os
import tempfile
import threading
import weakref
from typing import BinaryIO, Optional

logger = logging.getLogger("wasilet.runtime.output")

_CHUNK_SIZE = 64 * 1024


def _remove(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


class CapturedOutput:
    """Temp file holding the combined output of one workload."""

    def __init__(self, log_dir: str):
        # A named file is needed because several handles are opened on it.
        fd, self.path = tempfile.mkstemp(prefix="wasilet-", suffix=".log", dir=log_dir)
        os.close(fd)
        self._finalizer = weakref.finalize(self, _remove, self.path)

    def reopen(self, mode: str = "rb") -> BinaryIO:
        """Open a fresh, independent handle on the output file."""
        return open(self.path, mode)

    def remove(self) -> None:
        """Delete the backing file now instead of waiting for release."""
        self._finalizer()


class HandleFactory:
    """Hands out readable handles on a workload's captured output."""

    def __init__(self, output: CapturedOutput):
        self._output = output

    def new_handle(self) -> BinaryIO:
        """Create a new binary file object positioned at the start of the output."""
        return self._output.reopen("rb")


class OutputPump(threading.Thread):
    """
    Copies everything written to a pipe into the captured output.

    The engine opens the pipe's write end by path, once for stdout and once
    for stderr, so both streams interleave in write order. The pump exits
    when every write end has been closed.
    """

    def __init__(self, output: CapturedOutput, name: str):
        super().__init__(name=f"wasilet-output-{name}", daemon=True)
        self._output = output
        self._read_fd, self._write_fd = os.pipe()
        self._writer_open = True
        self._writer_lock = threading.Lock()

    @property
    def writer_path(self) -> str:
        """Path that opens a new duplicate of the pipe's write end."""
        return f"/dev/fd/{self._write_fd}"

    def release_writer(self) -> None:
        """Close the pump's own write end once the engine holds its duplicates."""
        with self._writer_lock:
            if self._writer_open:
                self._writer_open = False
                os.close(self._write_fd)

    def finish(self, timeout: Optional[float] = 5.0) -> None:
        """Release the write end and wait for buffered output to be copied."""
        self.release_writer()
        if self.is_alive():
            self.join(timeout)
        if self.is_alive():
            logger.warning("Output pump %s still running after %s seconds", self.name, timeout)

    def run(self) -> None:
        with open(self._read_fd, "rb", buffering=0) as pipe, self._output.reopen("ab") as sink:
            while True:
                chunk = pipe.read(_CHUNK_SIZE)
                if not chunk:
                    break
                sink.write(chunk)
                sink.flush()
