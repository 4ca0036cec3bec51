"""
Contexto de execução compartilhado do pipeline.

Este módulo define o `RunContext`, a estrutura canônica entregue a todos
os handlers durante a execução de uma run do pipeline no Atlas ETL.

O RunContext atua como o único meio permitido de:
    - resolver datasets produzidos por outros Steps (com emissão de lineage)
    - publicar datasets produzidos pelo Step corrente (registro atômico)
    - chamar colaboradores externos sob a política de timeout/retry do runner
    - registrar logs estruturados de execução
    - coletar warnings não fatais associados a Steps

Princípios fundamentais:
    - Isolamento por execução (cada run possui seu próprio contexto e registry)
    - Comunicação explícita e rastreável entre Steps
    - Ausência de estado global compartilhado

Invariantes:
    - Logs sempre incluem `run_id` e `step_id`
    - Toda resolução de dataset alheio gera exatamente uma aresta de lineage
    - Um dataset publicado está registrado E materializado, ou não existe

Limites explícitos:
    - Não executa Steps
    - Não decide políticas de execução
    - Não persiste dados automaticamente

Este módulo existe para garantir isolamento,
clareza e rastreabilidade na execução de pipelines.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, TypeVar

from atlas_etl.core.config.settings import RunSettings
from atlas_etl.core.traceability.lineage import LineageEdge, LineageSink

from .registry import DatasetRegistry
from .schema import infer_schema
from .types import Dataset, Schema, StepDefinition


T = TypeVar("T")


class ExternalCallGuard(Protocol):
    """Política de chamada a colaboradores externos (timeout + retry)."""

    def __call__(self, step: StepDefinition, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        ...

    def attempts(self, step_name: str) -> int:
        ...


@dataclass
class RunContext:
    """
    Contexto de execução compartilhado de uma run do pipeline.

    Campos canônicos:
    - run_id: identificador único da execução
    - created_at: timestamp UTC de criação do contexto
    - registry: DatasetRegistry escopado a esta run
    - settings: políticas efetivas da run
    - base_dir: diretório base para caminhos relativos (ex.: pasta do documento)
    - guard: política de timeout/retry para colaboradores externos (opcional)
    - lineage_sink: sink externo de lineage (opcional)
    - meta: metadados livres de execução
    - events / warnings / lineage: registros estruturados da run
    """
    run_id: str
    created_at: datetime
    registry: DatasetRegistry = field(default_factory=DatasetRegistry)
    settings: RunSettings = field(default_factory=RunSettings)
    base_dir: Optional[Path] = None
    guard: Optional[ExternalCallGuard] = None
    lineage_sink: Optional[LineageSink] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)
    lineage: List[LineageEdge] = field(default_factory=list, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    # -----------------------------
    # Datasets
    # -----------------------------
    def resolve(self, name: str, *, step: StepDefinition) -> Dataset:
        dataset = self.registry.resolve(name)
        if dataset.producing_step != step.name:
            edge = LineageEdge(
                producing_step=dataset.producing_step,
                target_dataset=name,
                consuming_step=step.name,
            )
            with self._lock:
                self.lineage.append(edge)
            if self.lineage_sink is not None:
                self.lineage_sink.emit(edge)
        return dataset

    def publish(
        self,
        name: str,
        data: Any,
        *,
        step: StepDefinition,
        schema: Optional[Schema] = None,
    ) -> Dataset:
        """Registra e materializa o dataset produzido pelo Step (tudo ou nada)."""
        if schema is None:
            schema = infer_schema(data)
        self.registry.register(name, schema, step.name, data)
        try:
            return self.registry.mark_materialized(name, step.name)
        except Exception:
            self.registry.discard(name, step.name)
            raise

    def resolve_path(self, value: str) -> Path:
        p = Path(value).expanduser()
        if not p.is_absolute() and self.base_dir is not None:
            p = Path(self.base_dir) / p
        return p

    # -----------------------------
    # Colaboradores externos
    # -----------------------------
    def call_external(self, step: StepDefinition, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        if self.guard is None:
            return fn(*args, **kwargs)
        return self.guard(step, fn, *args, **kwargs)

    def attempts(self, step_name: str) -> int:
        if self.guard is None:
            return 0
        return self.guard.attempts(step_name)

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, step_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "step_id": step_id,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, step_id: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(step_id, []).append(message)
