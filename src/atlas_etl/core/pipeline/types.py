"""
Tipos canônicos do pipeline do Atlas ETL.

Este módulo define as estruturas e enums fundamentais que padronizam
a comunicação entre ConfigLoader, DatasetRegistry, handlers, Dispatcher
e PipelineRunner.

Componentes principais:
    - StepType       → enum fechado dos tipos declaráveis (extract, transform, validate, load)
    - StepStatus     → enum da máquina de estados de um Step
    - StepDefinition → declaração imutável de um Step (produzida pelo loader)
    - PipelineConfig → sequência ordenada e imutável de StepDefinition
    - Column/Dataset → dataset nomeado, com schema e estado de materialização
    - StepOutput     → saída bem-sucedida de um handler
    - StepResult     → registro imutável do desfecho de um Step
    - PipelineResult → registro imutável e ordenado de uma run completa

Princípios fundamentais:
    - Tipos são estáveis e serializáveis
    - Valores textuais dos enums são canônicos (persistidos em Manifest/log)
    - Nenhuma lógica de execução vive neste módulo

Invariantes:
    - StepDefinition, PipelineConfig, StepResult e PipelineResult são imutáveis
    - `params` de um Step é somente leitura e preserva a ordem declarada
    - Um dataset tem no máximo um Step produtor por run

Limites explícitos:
    - Não executa Steps
    - Não decide políticas de execução
    - Não realiza I/O

Este módulo existe para garantir consistência,
interoperabilidade e clareza semântica no pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from atlas_etl.core.errors import ErrorPayload


class StepType(str, Enum):
    """
    Tipos declaráveis de Step.

    O conjunto é fechado: qualquer outro valor em `type` é rejeitado pelo
    ConfigLoader com `ConfigError`. O par `(type, subtype)` é a chave da
    tabela estática de dispatch.
    """
    EXTRACT = "extract"
    TRANSFORM = "transform"
    VALIDATE = "validate"
    LOAD = "load"


class StepStatus(str, Enum):
    """
    Estados da máquina de estados de um Step.

    Transições permitidas:
        - PENDING → RUNNING → {SUCCEEDED | FAILED}
        - PENDING → SKIPPED

    PENDING e RUNNING são transitórios; os demais são terminais.
    """
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.SUCCEEDED, StepStatus.FAILED, StepStatus.SKIPPED)


class DatasetState(str, Enum):
    UNMATERIALIZED = "unmaterialized"
    MATERIALIZED = "materialized"


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Chaves de params que referenciam datasets consumidos, por ordem canônica.
DATASET_INPUT_KEYS: Tuple[str, ...] = ("source", "left", "right")


@dataclass(frozen=True)
class StepDefinition:
    """
    Declaração imutável de um Step.

    Campos:
        - name: nome único do Step no documento
        - type: tipo declarado (`StepType`)
        - subtype: variante do tipo (ex.: "join" | "filter" para transform)
        - params: parâmetros tipados, somente leitura, na ordem declarada
        - declared_order: posição (0-based) na sequência do documento
        - depends_on: nomes de Steps anteriores dos quais depende explicitamente
        - enabled: Steps desabilitados são pulados sem executar

    Decisões arquiteturais:
        - Instâncias são criadas exclusivamente pelo ConfigLoader
        - Dependências entre datasets são derivadas de `params`
          (`consumes`/`produces`), nunca de texto livre
    """
    name: str
    type: StepType
    subtype: Optional[str] = None
    params: Mapping[str, Any] = field(default_factory=dict)
    declared_order: int = 0
    depends_on: Tuple[str, ...] = ()
    enabled: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.params, MappingProxyType):
            object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        object.__setattr__(self, "depends_on", tuple(self.depends_on))

    @property
    def key(self) -> Tuple[StepType, Optional[str]]:
        return (self.type, self.subtype)

    @property
    def label(self) -> str:
        return self.type.value if self.subtype is None else f"{self.type.value}/{self.subtype}"

    def consumes(self) -> Tuple[str, ...]:
        """Nomes de datasets lidos por este Step, na ordem canônica."""
        if self.type == StepType.EXTRACT:
            return ()
        names: List[str] = []
        for key in DATASET_INPUT_KEYS:
            value = self.params.get(key)
            if isinstance(value, str) and value and value not in names:
                names.append(value)
        return tuple(names)

    def produces(self) -> Optional[str]:
        """Nome do dataset escrito por este Step (apenas extract/transform)."""
        if self.type in (StepType.EXTRACT, StepType.TRANSFORM):
            target = self.params.get("target")
            return target if isinstance(target, str) and target else None
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "subtype": self.subtype,
            "params": dict(self.params),
            "declared_order": self.declared_order,
            "depends_on": list(self.depends_on),
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class PipelineConfig:
    """
    Pipeline declarativo já validado.

    A ordem de `steps` é significativa: é a ordem padrão de execução e a
    única fonte de dependência implícita entre Steps.
    """
    pipeline_name: str
    steps: Tuple[StepDefinition, ...] = ()
    inputs: Tuple[str, ...] = ()
    settings: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "inputs", tuple(self.inputs))
        if not isinstance(self.settings, MappingProxyType):
            object.__setattr__(self, "settings", MappingProxyType(dict(self.settings)))

    def step(self, name: str) -> StepDefinition:
        for s in self.steps:
            if s.name == name:
                return s
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipeline_name": self.pipeline_name,
            "inputs": list(self.inputs),
            "settings": dict(self.settings),
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass(frozen=True)
class Column:
    name: str
    dtype: str


Schema = Tuple[Column, ...]


@dataclass(frozen=True)
class Dataset:
    """
    Dataset nomeado de uma run.

    `producing_step` é None para inputs pré-existentes da run.
    `data` carrega o conteúdo (pandas.DataFrame) e não participa de repr/eq.
    """
    name: str
    schema: Schema
    state: DatasetState = DatasetState.UNMATERIALIZED
    producing_step: Optional[str] = None
    data: Any = field(default=None, repr=False, compare=False)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.schema]

    @property
    def is_materialized(self) -> bool:
        return self.state == DatasetState.MATERIALIZED


@dataclass(frozen=True)
class StepOutput:
    """Saída de um handler bem-sucedido (o runner adiciona status e tempos)."""
    summary: str
    metrics: Dict[str, Any] = field(default_factory=dict)
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StepResult:
    """
    Resultado imutável da execução (ou do skip) de um Step.

    Campos:
        - step_name: nome do Step
        - status: estado terminal (SUCCEEDED, FAILED ou SKIPPED)
        - started_at / ended_at: timestamps UTC
        - error: ErrorPayload quando FAILED (ou SKIPPED por referência pendente/abort)
        - summary: resumo textual
        - metrics / payload: dados estruturados produzidos pelo handler
        - attempts: número de chamadas a colaboradores externos
    """
    step_name: str
    status: StepStatus
    started_at: datetime
    ended_at: datetime
    error: Optional[ErrorPayload] = None
    summary: str = ""
    metrics: Dict[str, Any] = field(default_factory=dict)
    payload: Dict[str, Any] = field(default_factory=dict)
    attempts: int = 0

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_name": self.step_name,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "error": self.error.to_dict() if self.error is not None else None,
            "summary": self.summary,
            "metrics": dict(self.metrics),
            "payload": dict(self.payload),
            "attempts": self.attempts,
        }


@dataclass(frozen=True)
class PipelineResult:
    """
    Registro final e imutável de uma run.

    `steps` cobre todos os Steps declarados, na ordem declarada.
    """
    pipeline_name: str
    run_id: str
    status: RunStatus
    steps: Tuple[StepResult, ...]
    started_at: datetime
    ended_at: datetime
    aborted: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    def step(self, name: str) -> StepResult:
        for r in self.steps:
            if r.step_name == name:
                return r
        raise KeyError(name)

    def statuses(self) -> Dict[str, StepStatus]:
        return {r.step_name: r.status for r in self.steps}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipeline_name": self.pipeline_name,
            "run_id": self.run_id,
            "status": self.status.value,
            "aborted": self.aborted,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "steps": [r.to_dict() for r in self.steps],
        }
