"""Diagnostics — optional record of items skipped by lenient loading.

Discovery and parsing never fail on bad input; callers that want to know
what was dropped pass a :class:`Diagnostics` collector and inspect it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

KINDS = {"parse", "discovery", "duplicate-id"}


@dataclass
class Diagnostic:
    """One skipped or suspicious item."""
    kind: str
    path: str
    message: str

    def __str__(self) -> str:
        return f"[{self.kind}] {self.path}: {self.message}"


@dataclass
class Diagnostics:
    """Collector passed down through discovery and parsing."""
    items: list[Diagnostic] = field(default_factory=list)

    def add(self, kind: str, path: str, message: str) -> None:
        if kind not in KINDS:
            raise ValueError(f"Unknown diagnostic kind: {kind!r}")
        self.items.append(Diagnostic(kind=kind, path=path, message=message))

    def of_kind(self, kind: str) -> list[Diagnostic]:
        return [d for d in self.items if d.kind == kind]

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)
