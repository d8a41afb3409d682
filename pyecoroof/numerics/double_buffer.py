"""
DoubleBufferedValue: double-buffered scalar for per-timestep state.

- .read is the value committed at the end of the previous timestep.
- .write is the value being computed for the current timestep; assigning to
  it never disturbs .read, so a solver can start from the previous value and
  a diagnostic can still compare old vs new before the swap.
- swap() is O(1) and makes the write value visible to readers. The next
  write buffer starts as a copy of the new read value (copy-on-swap), so a
  value that is not recomputed in a timestep persists unchanged.
"""

from __future__ import annotations


class DoubleBufferedValue:
    """
    Use:
      t = DoubleBufferedValue(293.15)
      t.write = solve(start=t.read)
      t.swap()
    """

    __slots__ = ("_buf", "_read_idx")

    def __init__(self, initial_value: float = 0.0):
        v = float(initial_value)
        self._buf = [v, v]
        self._read_idx = 0

    @property
    def read(self) -> float:
        return self._buf[self._read_idx]

    @property
    def write(self) -> float:
        return self._buf[self._read_idx ^ 1]

    @write.setter
    def write(self, value: float) -> None:
        self._buf[self._read_idx ^ 1] = float(value)

    def swap(self) -> None:
        self._read_idx ^= 1
        self._buf[self._read_idx ^ 1] = self._buf[self._read_idx]

    def reset(self, value: float) -> None:
        """Set both buffers (environment start)."""
        v = float(value)
        self._buf[0] = v
        self._buf[1] = v

    def __float__(self) -> float:
        return self.read

    def __repr__(self) -> str:
        return f"DoubleBufferedValue(read={self.read!r}, write={self.write!r})"
