"""Chunk-to-line splitting for subprocess output."""

from __future__ import annotations

import codecs


class LineSplitter:
    """Splits arbitrary output chunks into complete lines, in order.

    A trailing fragment without a newline is held back until the next chunk
    completes it. Blank lines are skipped.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._partial = ""

    @property
    def partial(self) -> str:
        return self._partial

    def feed(self, chunk: bytes | str) -> list[str]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        text = self._partial + chunk
        *complete, self._partial = text.split("\n")
        return [line.strip() for line in complete if line.strip()]

    def flush(self) -> list[str]:
        """Return the held-back fragment as a final line, if any."""
        rest = (self._partial + self._decoder.decode(b"", final=True)).strip()
        self.reset()
        return [rest] if rest else []

    def reset(self) -> None:
        self._partial = ""
        self._decoder.reset()
