"""Ordered collection of configured task sources."""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Iterator, List

if TYPE_CHECKING:  # pragma: no cover
    from taskpicker.ports.tasks.source import TaskSource


@dataclass
class SourceEntry:
    source: "TaskSource"
    enabled: bool = True

    @property
    def name(self) -> str:
        return self.source.name()


class SourceRegistry:
    """Sources kept sorted by display name.

    Indexes are positions in that order and shift on insert/remove.
    """

    def __init__(self, entries: Iterable[SourceEntry] = ()) -> None:
        self._entries: List[SourceEntry] = []
        for entry in entries:
            index = self.add_or_replace(entry.source)
            self._entries[index].enabled = entry.enabled

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SourceEntry]:
        return iter(list(self._entries))

    def names(self) -> List[str]:
        return [entry.name for entry in self._entries]

    def _position(self, name: str) -> int:
        return bisect.bisect_left(self._entries, name, key=lambda entry: entry.name)

    def find(self, name: str) -> int | None:
        index = self._position(name)
        if index < len(self._entries) and self._entries[index].name == name:
            return index
        return None

    def add_or_replace(self, source: "TaskSource") -> int:
        """Insert ``source`` in name order or replace the one with its name.

        A replaced source keeps its position and enabled flag; a new source
        starts enabled. Returns the index of the entry.
        """

        name = source.name()
        index = self._position(name)
        if index < len(self._entries) and self._entries[index].name == name:
            self._entries[index].source = source
        else:
            self._entries.insert(index, SourceEntry(source=source, enabled=True))
        return index

    def remove(self, index: int) -> SourceEntry:
        self._check_index(index)
        return self._entries.pop(index)

    def source_at(self, index: int) -> SourceEntry:
        self._check_index(index)
        return self._entries[index]

    def snapshot(self) -> List[SourceEntry]:
        """Cloned entries for one refresh cycle."""

        return [SourceEntry(source=entry.source.clone(), enabled=entry.enabled) for entry in self._entries]

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= len(self._entries):
            raise IndexError(f"source index {index} out of range (have {len(self._entries)})")


__all__ = ["SourceEntry", "SourceRegistry"]
