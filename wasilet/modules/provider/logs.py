"""
Log retrieval options and the sink that applies them.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LogOptions(BaseModel):
    """Query options of a containerLogs request, named as the kubelet API names them."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tail_lines: Optional[int] = Field(default=None, alias="tailLines", ge=0)
    limit_bytes: Optional[int] = Field(default=None, alias="limitBytes", ge=1)
    timestamps: bool = False
    # accepted for compatibility; output is returned once, never followed
    follow: bool = False


class LogSender:
    """Collects output sent by a provider and trims it according to LogOptions."""

    def __init__(self, options: Optional[LogOptions] = None):
        self.options = options or LogOptions()
        self._chunks: List[bytes] = []

    async def send(self, data: bytes) -> None:
        self._chunks.append(bytes(data))

    def body(self) -> bytes:
        """Return the collected output with tail and byte limits applied."""
        data = b"".join(self._chunks)

        tail = self.options.tail_lines
        if tail is not None:
            lines = data.splitlines(keepends=True)
            if tail < len(lines):
                data = b"".join(lines[len(lines) - tail:])

        if self.options.limit_bytes is not None:
            data = data[: self.options.limit_bytes]
        return data
