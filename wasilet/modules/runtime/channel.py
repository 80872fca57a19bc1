"""
Exec request/response channel between a workload handle and its worker.

The handle side sends commands and waits on a per-request reply slot. The
worker side receives commands one at a time and fills the reply. Either side
can close its end: the worker closes it before running an entry point, the
handle closes it when the workload is stopped.
"""

import queue
import threading
from concurrent.futures import Future
from typing import List, Optional

from wasilet.exceptions import ChannelError
from wasilet.modules.exec import Command


class ExecRequest:
    """One command in flight plus the slot its response is delivered to."""

    def __init__(self, command: Command):
        self.command = command
        self.reply: Future = Future()

    def begin(self) -> bool:
        """Claim the request for processing; False if the caller gave up."""
        return self.reply.set_running_or_notify_cancel()


class ExecChannel:
    """Synchronous command channel with explicit close on both ends."""

    def __init__(self):
        self._requests: "queue.Queue[Optional[ExecRequest]]" = queue.Queue()
        self._lock = threading.Lock()
        self._receiver_closed = False
        self._sender_closed = False

    @property
    def receiver_closed(self) -> bool:
        return self._receiver_closed

    @property
    def sender_closed(self) -> bool:
        return self._sender_closed

    # Handle side

    def send(self, command: Command) -> ExecRequest:
        """
        Queue a command for the worker.

        Raises:
            ChannelError: If either end of the channel has been closed
        """
        request = ExecRequest(command)
        with self._lock:
            if self._receiver_closed or self._sender_closed:
                raise ChannelError("Cannot send the exec command to the runtime")
            self._requests.put(request)
        return request

    def close_sender(self) -> None:
        """Close the handle's end; an idle worker wakes up and stops serving."""
        with self._lock:
            if self._sender_closed:
                return
            self._sender_closed = True
            self._requests.put(None)

    # Worker side

    def recv(self) -> Optional[ExecRequest]:
        """Block for the next request; None once the sender has closed."""
        return self._requests.get()

    def reply(self, request: ExecRequest, result: Optional[str] = None,
              error: Optional[BaseException] = None) -> None:
        """
        Deliver the response for a request claimed with ``begin()``.

        Raises:
            ChannelError: If the handle side closed while the command ran
        """
        if error is not None:
            request.reply.set_exception(error)
        else:
            request.reply.set_result(result)
        if self._sender_closed:
            raise ChannelError("Unable to send the command response")

    def close_receiver(self) -> None:
        """
        Close the worker's end.

        Requests already queued fail with ChannelError, later sends fail
        immediately.
        """
        pending: List[ExecRequest] = []
        with self._lock:
            if self._receiver_closed:
                return
            self._receiver_closed = True
            while True:
                try:
                    request = self._requests.get_nowait()
                except queue.Empty:
                    break
                if request is not None:
                    pending.append(request)

        for request in pending:
            if request.begin():
                request.reply.set_exception(
                    ChannelError("Cannot receive the exec response from the runtime")
                )
