"""
messages.py

Diagnostics printing for the roof models.

- diag_print(tag, msg, enabled): one tagged line, e.g. "[Moisture] ...".
- RecurringWarning: first occurrence prints the full message (plus continuation
  lines); later occurrences are only counted, with min/max of the offending
  value tracked, and summarised once via summary().
"""

from __future__ import annotations

from dataclasses import dataclass, field


def diag_print(tag: str, msg: str, enabled: bool = True) -> None:
    if enabled:
        print(f"[{tag}] {msg}")


@dataclass
class RecurringWarning:
    tag: str
    message: str
    continuation: tuple[str, ...] = ()
    enabled: bool = True
    count: int = 0
    min_value: float | None = None
    max_value: float | None = None
    _lines: list[str] = field(default_factory=list, repr=False)

    def emit(self, value: float | None = None, detail: str | None = None) -> None:
        """Record one occurrence; only the first is printed in full."""
        self.count += 1
        if value is not None:
            self.min_value = value if self.min_value is None else min(self.min_value, value)
            self.max_value = value if self.max_value is None else max(self.max_value, value)
        if self.count == 1:
            self._say(self.message)
            for line in self.continuation:
                self._say(f"   ...{line}")
            if detail:
                self._say(f"   ...{detail}")

    def summary(self) -> str | None:
        """Print and return the occurrence summary, or None if never emitted."""
        if self.count == 0:
            return None
        text = f"{self.message} -- occurred {self.count} time(s)"
        if self.min_value is not None:
            text += f"; min={self.min_value:.6g} max={self.max_value:.6g}"
        self._say(text)
        return text

    def reset(self) -> None:
        self.count = 0
        self.min_value = None
        self.max_value = None

    @property
    def lines(self) -> list[str]:
        """Everything this warning has printed (kept for inspection)."""
        return list(self._lines)

    def _say(self, line: str) -> None:
        self._lines.append(line)
        diag_print(self.tag, line, self.enabled)
