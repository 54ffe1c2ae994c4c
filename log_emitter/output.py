"""Local output channel: one record per line on stdout, flushed immediately."""

import sys
import threading


class LocalOutputError(Exception):
    """Raised when the local output stream cannot be written. Fatal."""


class LocalWriter:
    def __init__(self, stream=None):
        self._stream = stream
        self._lock = threading.Lock()

    @property
    def stream(self):
        # Looked up per write: sys.stdout may be swapped after construction
        return self._stream if self._stream is not None else sys.stdout

    def write(self, line: str):
        with self._lock:
            try:
                self.stream.write(line + "\n")
                self.stream.flush()
            except (OSError, ValueError) as e:
                raise LocalOutputError(f"failed to write to local output: {e}") from e
