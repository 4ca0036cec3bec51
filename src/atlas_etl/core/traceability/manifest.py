# src/atlas_etl/core/traceability/manifest.py
"""
Manifest v1, registro forense de uma run do Atlas ETL.

O Manifest consolida, de forma determinística e auditável:
    - metadados da run (run_id, pipeline, status, início/fim, versão)
    - entradas semânticas (hash da configuração efetiva e políticas)
    - estado final de cada Step (status, erro, métricas, tentativas)
    - arestas de lineage produzidas durante a run
    - Event Log ordenado de transições

Princípios fundamentais:
    - O Manifest é derivado do PipelineResult e do RunContext, nunca o contrário
    - A ordem de `steps` é a ordem declarada; a de `events`, a de emissão
    - O Manifest é serializável e reconstruível (round-trip via JSON)

Decisões arquiteturais:
    - UTC é o timezone canônico de todos os timestamps
    - JSON determinístico (sort_keys, indent=2) na persistência
    - DataFrames nunca entram no Manifest, apenas nomes e schemas

Limites explícitos:
    - Não executa pipeline
    - Não decide políticas de execução
    - Não realiza migração de versões de schema
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from atlas_etl.core.config.hashing import compute_config_hash
from atlas_etl.core.config.settings import RunSettings
from atlas_etl.core.pipeline.context import RunContext
from atlas_etl.core.pipeline.types import PipelineConfig, PipelineResult


MANIFEST_VERSION = "1"


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """Timestamps sem timezone são assumidos como UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class RunManifest:
    """
    Manifest v1 de uma run.

    Campos:
        - run: metadados da execução
        - inputs: hash da configuração efetiva, políticas e inputs da run
        - steps: estado final por Step, na ordem declarada
        - lineage: arestas {producing_step, target_dataset, consuming_step}
        - events: Event Log ordenado
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    steps: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    lineage: List[Dict[str, Any]] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "steps": {k: dict(v) for k, v in self.steps.items()},
            "lineage": [dict(e) for e in self.lineage],
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunManifest":
        """Reconstrução permissiva: campos ausentes iniciam vazios."""
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            steps={k: dict(v) for k, v in (data.get("steps", {}) or {}).items()},
            lineage=[dict(e) for e in (data.get("lineage", []) or [])],
            events=[dict(e) for e in (data.get("events", []) or [])],
        )


def build_manifest(
    config: PipelineConfig,
    result: PipelineResult,
    *,
    settings: RunSettings,
    context: Optional[RunContext] = None,
    version: Optional[str] = None,
) -> RunManifest:
    """
    Constrói o Manifest de uma run finalizada.

    Args:
        config: pipeline executado.
        result: resultado final da run.
        settings: políticas efetivas da run.
        context: contexto da run (fonte de lineage e eventos), opcional.
        version: versão do Atlas ETL; default é a versão instalada.

    Returns:
        RunManifest: registro serializável da run.
    """
    if version is None:
        from atlas_etl import __version__ as version

    effective = {**config.to_dict(), "settings": settings.to_dict()}

    steps: Dict[str, Dict[str, Any]] = {}
    for r in result.steps:
        record = r.to_dict()
        record.pop("step_name")
        record["duration_ms"] = _ms_between(r.started_at, r.ended_at)
        steps[r.step_name] = record

    return RunManifest(
        run={
            "run_id": result.run_id,
            "pipeline_name": result.pipeline_name,
            "status": result.status.value,
            "aborted": result.aborted,
            "started_at": _iso(result.started_at),
            "ended_at": _iso(result.ended_at),
            "duration_ms": _ms_between(result.started_at, result.ended_at),
            "atlas_etl_version": version,
            "manifest_version": MANIFEST_VERSION,
        },
        inputs={
            "config_hash": compute_config_hash(effective),
            "settings": settings.to_dict(),
            "datasets": list(config.inputs),
        },
        steps=steps,
        lineage=[e.to_dict() for e in context.lineage] if context is not None else [],
        events=[dict(e) for e in context.events] if context is not None else [],
    )


def save_manifest(manifest: Union[RunManifest, Dict[str, Any]], path: Union[str, Path]) -> None:
    """Persiste o Manifest em JSON determinístico."""
    p = Path(path)
    data = manifest.to_dict() if isinstance(manifest, RunManifest) else dict(manifest)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True, default=str), encoding="utf-8")


def load_manifest(path: Union[str, Path]) -> RunManifest:
    """
    Restaura um Manifest persistido.

    Raises:
        FileNotFoundError: se o arquivo não existir.
        json.JSONDecodeError: em caso de JSON inválido.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return RunManifest.from_dict(data)
