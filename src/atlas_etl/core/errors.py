"""
Atlas ETL: Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Atlas ETL.
Erros são considerados artefatos de domínio e fazem parte do contrato operacional
do sistema, devendo ser:

- explícitos
- serializáveis
- rastreáveis
- acionáveis

Toda falha de Step é convertida em um `ErrorPayload` na fronteira do
dispatcher. Nenhuma decisão implícita é permitida.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ErrorPayload:
    """
    Payload canônico de erro do Atlas ETL.

    Campos:
    - kind: código estável do erro (não é texto livre, ver catálogo abaixo)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    kind: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        # o chamador deve garantir que details seja serializável
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorPayload":
        return cls(
            kind=str(data.get("kind", UNEXPECTED_ERROR)),
            message=str(data.get("message", "")),
            details=dict(data.get("details") or {}),
            hint=data.get("hint"),
        )


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Configuração (fatal, pré-execução)
CONFIG_ERROR = "ConfigError"

# Datasets
UNKNOWN_DATASET = "UnknownDatasetError"
DUPLICATE_DATASET = "DuplicateDatasetError"
DATASET_OWNERSHIP = "DatasetOwnershipError"

# Dispatch / formatos
UNSUPPORTED_STEP_TYPE = "UnsupportedStepTypeError"
UNSUPPORTED_FORMAT = "UnsupportedFormatError"

# Schema / predicados
SCHEMA_MISMATCH = "SchemaMismatchError"
UNKNOWN_COLUMN = "UnknownColumnError"
PREDICATE_SYNTAX = "PredicateSyntaxError"

# Validação
VALIDATION_MISMATCH = "ValidationMismatchError"

# Colaboradores externos
STEP_TIMEOUT = "TimeoutError"
TRANSIENT_IO = "TransientIOError"

# Engine
DEPENDENCY_NOT_SATISFIED = "DependencyNotSatisfied"
RUN_ABORTED = "RunAborted"
UNEXPECTED_ERROR = "UnexpectedError"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def dataset_never_produced(*, dataset: str, step: str) -> ErrorPayload:
    return ErrorPayload(
        kind=UNKNOWN_DATASET,
        message=f"Dataset '{dataset}' is never produced in this run",
        details={"dataset": dataset, "step": step},
        hint="Declare um Step que produza o dataset ou registre-o como input da run.",
    )


def dependency_not_satisfied(
    *,
    step: str,
    datasets: Optional[List[str]] = None,
    steps: Optional[List[str]] = None,
) -> ErrorPayload:
    return ErrorPayload(
        kind=DEPENDENCY_NOT_SATISFIED,
        message="Upstream dependency did not succeed",
        details={
            "step": step,
            "datasets": list(datasets or []),
            "steps": list(steps or []),
        },
        hint="Corrija a falha do Step produtor; dependentes são pulados por construção.",
    )


def run_aborted(*, step: str, failed_step: str) -> ErrorPayload:
    return ErrorPayload(
        kind=RUN_ABORTED,
        message=f"Run aborted after failure of step '{failed_step}'",
        details={"step": step, "failed_step": failed_step},
        hint="Use on_step_failure=skip_dependents para continuar Steps independentes.",
    )


def unexpected_error(*, step: Optional[str], exc: BaseException) -> ErrorPayload:
    return ErrorPayload(
        kind=UNEXPECTED_ERROR,
        message=str(exc) or "Erro inesperado durante execução",
        details={"step": step, "exception_class": exc.__class__.__name__},
        hint="Verifique o log técnico e a configuração do pipeline",
    )
