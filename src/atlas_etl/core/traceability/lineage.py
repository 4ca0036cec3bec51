"""
Lineage de datasets: arestas produtor → dataset → consumidor.

Uma aresta é emitida sempre que um Step resolve um dataset que ele não
produziu. Ferramentas downstream reconstroem o grafo de dependências de
datasets de uma run sem reprocessar o documento de configuração.

Campos da aresta (v1):
    - producing_step: Step que produziu o dataset (None para inputs da run)
    - target_dataset: nome do dataset
    - consuming_step: Step que o resolveu
"""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable


@dataclass(frozen=True)
class LineageEdge:
    producing_step: Optional[str]
    target_dataset: str
    consuming_step: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineageEdge":
        return cls(
            producing_step=data.get("producing_step"),
            target_dataset=str(data["target_dataset"]),
            consuming_step=str(data["consuming_step"]),
        )


@runtime_checkable
class LineageSink(Protocol):
    def emit(self, edge: LineageEdge) -> None:
        ...


class MemoryLineageSink:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.edges: List[LineageEdge] = []

    def emit(self, edge: LineageEdge) -> None:
        with self._lock:
            self.edges.append(edge)


class JsonlLineageSink:
    """Uma aresta por linha JSON, em modo append."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._lock = threading.Lock()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, edge: LineageEdge) -> None:
        line = json.dumps(edge.to_dict(), sort_keys=True, ensure_ascii=False) + "\n"
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)


def read_lineage(path: Union[str, Path]) -> List[LineageEdge]:
    edges: List[LineageEdge] = []
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                edges.append(LineageEdge.from_dict(json.loads(line)))
    return edges
