"""Directed edge table between documents, used to keep back-references."""

from dataclasses import dataclass


@dataclass
class EdgeChange:
    added: list[str]
    removed: list[str]


class ReferenceGraph:
    """Forward and reverse adjacency for document-to-document references.

    Only ``knowledge`` references participate. Insertion order is kept so
    ``referrers`` is stable.
    """

    def __init__(self):
        self._outgoing: dict[str, dict[str, None]] = {}
        self._incoming: dict[str, dict[str, None]] = {}

    def set_edges(self, source: str, targets: list[str]) -> EdgeChange:
        """Replace every outgoing edge of ``source``."""
        wanted = dict.fromkeys(t for t in targets if t != source)
        current = self._outgoing.get(source, {})

        removed = [t for t in current if t not in wanted]
        added = [t for t in wanted if t not in current]

        for target in removed:
            self._unlink(source, target)
        for target in added:
            self._incoming.setdefault(target, {})[source] = None

        if wanted:
            self._outgoing[source] = wanted
        else:
            self._outgoing.pop(source, None)
        return EdgeChange(added=added, removed=removed)

    def remove_source(self, source: str) -> list[str]:
        """Drop every outgoing edge of ``source``; returns the old targets."""
        targets = list(self._outgoing.pop(source, {}))
        for target in targets:
            self._unlink(source, target)
        return targets

    def _unlink(self, source: str, target: str) -> None:
        referrers = self._incoming.get(target)
        if referrers is None:
            return
        referrers.pop(source, None)
        if not referrers:
            del self._incoming[target]

    def referrers(self, target: str) -> list[str]:
        return list(self._incoming.get(target, {}))

    def clear(self) -> None:
        self._outgoing.clear()
        self._incoming.clear()
