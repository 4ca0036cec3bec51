"""
Atlas ETL: Canonical Exceptions (v1)

Este módulo define exceções tipadas internas do Atlas ETL.

Objetivo:
- Permitir que handlers e Engine levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para ErrorPayload
- Evitar ValueError/RuntimeError genéricos em guardrails críticos

Regras:
- Cada exceção declara um `kind` estável (ver catálogo em `core.errors`)
- Exceções devem carregar apenas dados estruturados (serializáveis)
- `transient=True` marca falhas de I/O elegíveis a retry pelo runner

Erros de configuração NÃO vivem aqui: ver `core.config.errors`.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from . import errors as _codes
from .errors import ErrorPayload


class EtlException(Exception):
    """Base class para exceções internas do Atlas ETL.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    kind: str = _codes.UNEXPECTED_ERROR
    transient: bool = False

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.hint = hint

    def __str__(self) -> str:  # pragma: no cover
        return self.message

    def to_payload(self) -> ErrorPayload:
        return ErrorPayload(
            kind=self.kind,
            message=self.message,
            details=dict(self.details),
            hint=self.hint,
        )


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------

class UnknownDatasetError(EtlException):
    """Dataset ausente no registry ou ainda não materializado."""

    kind = _codes.UNKNOWN_DATASET

    def __init__(self, name: str, *, reason: str = "not registered") -> None:
        super().__init__(
            f"Unknown dataset '{name}' ({reason})",
            details={"dataset": name, "reason": reason},
            hint="Garanta que o Step produtor aparece antes e foi bem-sucedido.",
        )
        self.name = name


class DuplicateDatasetError(EtlException):
    """Violação do invariante write-once: o nome já foi registrado nesta run."""

    kind = _codes.DUPLICATE_DATASET

    def __init__(self, name: str, *, existing_producer: Optional[str], producer: Optional[str]) -> None:
        super().__init__(
            f"Dataset '{name}' already registered in this run",
            details={
                "dataset": name,
                "existing_producer": existing_producer,
                "producer": producer,
            },
            hint="Cada dataset deve ser produzido por exatamente um Step.",
        )
        self.name = name


class DatasetOwnershipError(EtlException):
    """Um Step tentou materializar um dataset que não produziu."""

    kind = _codes.DATASET_OWNERSHIP

    def __init__(self, name: str, *, producer: Optional[str], caller: str) -> None:
        super().__init__(
            f"Step '{caller}' cannot materialize dataset '{name}' owned by '{producer}'",
            details={"dataset": name, "producer": producer, "caller": caller},
        )


# ---------------------------------------------------------------------------
# Dispatch / formatos
# ---------------------------------------------------------------------------

class UnsupportedStepTypeError(EtlException):
    kind = _codes.UNSUPPORTED_STEP_TYPE

    def __init__(self, step_type: str, subtype: Optional[str], *, supported: Iterable[str]) -> None:
        label = step_type if subtype is None else f"{step_type}/{subtype}"
        super().__init__(
            f"Unsupported step type: {label}",
            details={"type": step_type, "subtype": subtype, "supported": sorted(supported)},
            hint="Use um dos pares (type, subtype) suportados pelo dispatcher.",
        )


class UnsupportedFormatError(EtlException):
    kind = _codes.UNSUPPORTED_FORMAT

    def __init__(self, fmt: Any, *, supported: Iterable[str]) -> None:
        super().__init__(
            f"Unsupported format: {fmt}",
            details={"format": fmt, "supported": list(supported)},
            hint="Declare um formato suportado em params.format.",
        )


# ---------------------------------------------------------------------------
# Schema / predicados
# ---------------------------------------------------------------------------

class SchemaMismatchError(EtlException):
    kind = _codes.SCHEMA_MISMATCH


class UnknownColumnError(EtlException):
    kind = _codes.UNKNOWN_COLUMN

    def __init__(self, column: str, *, available: Iterable[str]) -> None:
        super().__init__(
            f"Unknown column '{column}'",
            details={"column": column, "available": list(available)},
        )
        self.column = column


class PredicateSyntaxError(EtlException):
    kind = _codes.PREDICATE_SYNTAX

    def __init__(self, message: str, *, condition: str, position: int) -> None:
        super().__init__(
            f"{message} at position {position}",
            details={"condition": condition, "position": position},
            hint="Revise a sintaxe da condição (comparações, and/or/not, parênteses).",
        )


# ---------------------------------------------------------------------------
# Validação
# ---------------------------------------------------------------------------

class ValidationMismatchError(EtlException):
    """Diff estruturado entre colunas esperadas e reais de um dataset."""

    kind = _codes.VALIDATION_MISMATCH

    def __init__(
        self,
        *,
        dataset: str,
        missing: Iterable[str],
        extra: Iterable[str],
        order_mismatch: bool = False,
    ) -> None:
        self.missing = set(missing)
        self.extra = set(extra)
        self.order_mismatch = order_mismatch
        parts: List[str] = []
        if self.missing:
            parts.append(f"missing={sorted(self.missing)}")
        if self.extra:
            parts.append(f"extra={sorted(self.extra)}")
        if order_mismatch:
            parts.append("column order differs")
        super().__init__(
            f"Schema of '{dataset}' does not match expected columns: " + ", ".join(parts),
            details={
                "dataset": dataset,
                "missing": sorted(self.missing),
                "extra": sorted(self.extra),
                "order_mismatch": order_mismatch,
            },
            hint="Ajuste expected_columns ou o Step que produz o dataset.",
        )


# ---------------------------------------------------------------------------
# Colaboradores externos
# ---------------------------------------------------------------------------

class StepTimeoutError(EtlException):
    """Chamada a colaborador externo excedeu o timeout do Step. Nunca é re-tentada."""

    kind = _codes.STEP_TIMEOUT

    def __init__(self, step: str, *, timeout_seconds: float) -> None:
        super().__init__(
            f"Step '{step}' timed out after {timeout_seconds}s",
            details={"step": step, "timeout_seconds": timeout_seconds},
        )


class TransientIOError(EtlException):
    """Falha transitória de I/O reportada explicitamente por um adapter."""

    kind = _codes.TRANSIENT_IO
    transient = True
