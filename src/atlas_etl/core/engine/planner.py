# src/atlas_etl/core/engine/planner.py
"""
Planejador de execução do pipeline.

Este módulo analisa um `PipelineConfig` já validado e deriva, sem executar
nada, as relações de dependência entre Steps:

    - produtor de cada dataset
    - Steps a montante de cada Step (produtores consumidos + `depends_on`)
    - referências pendentes (datasets consumidos que nenhum Step produz e
      que não são inputs da run)
    - waves de execução para o modo concorrente

Princípios fundamentais:
    - A ordem declarada é a ordem de execução e de reporte
    - O plano é determinístico para o mesmo PipelineConfig
    - Nenhuma decisão de política é tomada aqui

Decisões arquiteturais:
    - O nível de um Step é 1 + o maior nível entre seus Steps a montante
      (0 sem dependências); Steps de mesmo nível formam uma wave
    - Dentro de uma wave os Steps mantêm a ordem declarada
    - Como o loader rejeita referências para frente, o grafo é acíclico
      por construção

Invariantes:
    - Nenhum Step aparece antes de seus Steps a montante
    - Todo Step aparece exatamente uma vez no plano
    - Dois Steps de uma mesma wave nunca dependem um do outro

Limites explícitos:
    - Não executa Steps
    - Não interage com RunContext
    - Não registra eventos de rastreabilidade
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from atlas_etl.core.pipeline.types import PipelineConfig, StepDefinition


@dataclass(frozen=True)
class ExecutionPlan:
    """Plano derivado de um PipelineConfig."""

    steps: Tuple[StepDefinition, ...]
    inputs: Tuple[str, ...] = ()
    producers: Dict[str, str] = field(default_factory=dict)
    upstream: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    dangling: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    levels: Dict[str, int] = field(default_factory=dict)

    def producer_of(self, dataset: str) -> Optional[str]:
        return self.producers.get(dataset)

    def waves(self, *, concurrent: bool = True) -> List[List[StepDefinition]]:
        """
        Agrupa os Steps em waves de execução.

        Sem concorrência, cada Step é sua própria wave, na ordem declarada.
        """
        if not concurrent:
            return [[s] for s in self.steps]
        grouped: Dict[int, List[StepDefinition]] = {}
        for s in self.steps:
            grouped.setdefault(self.levels[s.name], []).append(s)
        return [grouped[level] for level in sorted(grouped)]

    def describe(self) -> List[str]:
        lines: List[str] = []
        for s in self.steps:
            reads = ", ".join(s.consumes()) or "-"
            writes = s.produces() or "-"
            line = f"{s.declared_order + 1:>3}. {s.name} [{s.label}] reads: {reads} writes: {writes}"
            if s.depends_on:
                line += f" after: {', '.join(s.depends_on)}"
            if not s.enabled:
                line += " (disabled)"
            if s.name in self.dangling:
                line += f" (never produced: {', '.join(self.dangling[s.name])})"
            lines.append(line)
        return lines


def plan_execution(config: PipelineConfig) -> ExecutionPlan:
    """
    Deriva o ExecutionPlan de um PipelineConfig.

    Args:
        config: pipeline já validado pelo loader.

    Returns:
        ExecutionPlan: produtores, dependências, referências pendentes e níveis.
    """
    producers: Dict[str, str] = {}
    for s in config.steps:
        target = s.produces()
        if target is not None:
            producers[target] = s.name

    inputs = set(config.inputs)
    upstream: Dict[str, Tuple[str, ...]] = {}
    dangling: Dict[str, Tuple[str, ...]] = {}
    levels: Dict[str, int] = {}

    for s in config.steps:
        deps: List[str] = []
        missing: List[str] = []
        for dataset in s.consumes():
            producer = producers.get(dataset)
            if producer is not None:
                if producer not in deps:
                    deps.append(producer)
            elif dataset not in inputs:
                missing.append(dataset)
        for dep in s.depends_on:
            if dep not in deps:
                deps.append(dep)

        upstream[s.name] = tuple(deps)
        if missing:
            dangling[s.name] = tuple(missing)
        levels[s.name] = 1 + max((levels.get(d, 0) for d in deps), default=-1)

    return ExecutionPlan(
        steps=config.steps,
        inputs=config.inputs,
        producers=producers,
        upstream=upstream,
        dangling=dangling,
        levels=levels,
    )
