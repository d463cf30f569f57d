"""Abstract directed graph with a Graphviz DOT renderer."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    label: Optional[str] = None


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


class Digraph:
    """Named nodes with display labels plus directed, optionally labelled edges."""

    def __init__(self, name: str = "G") -> None:
        self.name = name
        self._instances: "OrderedDict[str, str]" = OrderedDict()
        self._edges: List[Edge] = []

    def add_instance(self, name: str, label: str) -> None:
        self._instances[name] = label

    def add_edge(self, source: str, target: str, label: Optional[str] = None) -> None:
        self._edges.append(Edge(source, target, label))

    @property
    def instances(self) -> Dict[str, str]:
        return dict(self._instances)

    @property
    def edges(self) -> Sequence[Edge]:
        return tuple(self._edges)

    def indegrees_of(self, count: int) -> List[str]:
        """Return the instances whose in-degree equals ``count``, in insertion order."""

        indegrees = {name: 0 for name in self._instances}
        for edge in self._edges:
            indegrees[edge.target] = indegrees.get(edge.target, 0) + 1
        return [name for name, degree in indegrees.items() if degree == count]

    def render(self) -> str:
        lines = [f"digraph {self.name} {{"]
        for name, label in self._instances.items():
            lines.append(f"\t{_quote(name)} [ label = {_quote(label)} ];")
        for edge in self._edges:
            line = f"\t{_quote(edge.source)} -> {_quote(edge.target)}"
            if edge.label is not None:
                line += f" [ label = {_quote(edge.label)} ]"
            lines.append(line + ";")
        lines.append("}")
        return "\n".join(lines) + "\n"

    def write(self, output_path: Path) -> None:
        output_path.write_text(self.render(), "utf-8")

    def __str__(self) -> str:
        return self.render()
