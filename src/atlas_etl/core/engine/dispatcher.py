# src/atlas_etl/core/engine/dispatcher.py
"""
StepDispatcher do Atlas ETL.

O dispatcher resolve o handler de um Step a partir de uma tabela ESTÁTICA
indexada por `(type, subtype)` e é a fronteira única de conversão de erros:
toda exceção levantada por um handler vira um `StepResult` FAILED com
`ErrorPayload` serializável.

Decisões arquiteturais:
    - A tabela é fechada; extensões são feitas passando outra tabela ao
      construtor (nunca por avaliação de strings ou import dinâmico)
    - Par desconhecido falha com UnsupportedStepTypeError como falha do Step,
      não da run
    - StepResult é imutável: o dispatcher cria sempre novas instâncias

Invariantes:
    - `execute` nunca levanta exceção (exceto interrupções do interpretador)
    - Exceções do domínio preservam o `kind`; as demais viram UnexpectedError

Limites explícitos:
    - Não decide políticas de falha (responsabilidade do runner)
    - Não verifica dependências entre Steps
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional, Tuple

from atlas_etl.core.errors import ErrorPayload, unexpected_error
from atlas_etl.core.exceptions import EtlException, UnsupportedStepTypeError
from atlas_etl.core.pipeline.context import RunContext
from atlas_etl.core.pipeline.step import StepHandler
from atlas_etl.core.pipeline.types import StepDefinition, StepResult, StepStatus, StepType
from atlas_etl.steps.extract.read import ExtractHandler
from atlas_etl.steps.load.write import LoadHandler
from atlas_etl.steps.transform.filter import FilterHandler
from atlas_etl.steps.transform.join import JoinHandler
from atlas_etl.steps.validate.columns import ValidateHandler


HandlerKey = Tuple[StepType, Optional[str]]
Clock = Callable[[], datetime]


def default_handlers() -> Dict[HandlerKey, StepHandler]:
    """Tabela canônica (v1) de handlers."""
    return {
        (StepType.EXTRACT, None): ExtractHandler(),
        (StepType.TRANSFORM, "join"): JoinHandler(),
        (StepType.TRANSFORM, "filter"): FilterHandler(),
        (StepType.VALIDATE, None): ValidateHandler(),
        (StepType.LOAD, None): LoadHandler(),
    }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def exception_to_error(exc: BaseException, *, step: Optional[str] = None) -> ErrorPayload:
    """Converte exceções em ErrorPayload (serializável, acionável)."""
    if isinstance(exc, EtlException):
        return exc.to_payload()
    return unexpected_error(step=step, exc=exc)


class StepDispatcher:
    """Resolve e invoca o handler de cada Step."""

    def __init__(
        self,
        handlers: Optional[Mapping[HandlerKey, StepHandler]] = None,
        *,
        clock: Clock = _utcnow,
    ) -> None:
        table = default_handlers() if handlers is None else dict(handlers)
        self.handlers: Mapping[HandlerKey, StepHandler] = MappingProxyType(table)
        self._clock = clock

    def supported(self) -> Tuple[str, ...]:
        return tuple(
            t.value if sub is None else f"{t.value}/{sub}" for (t, sub) in self.handlers
        )

    def dispatch(self, step: StepDefinition) -> StepHandler:
        handler = self.handlers.get(step.key)
        if handler is None:
            raise UnsupportedStepTypeError(step.type.value, step.subtype, supported=self.supported())
        return handler

    def execute(self, step: StepDefinition, ctx: RunContext) -> StepResult:
        started = self._clock()
        try:
            handler = self.dispatch(step)
            output = handler.run(step, ctx)
        except Exception as e:
            error = exception_to_error(e, step=step.name)
            return StepResult(
                step_name=step.name,
                status=StepStatus.FAILED,
                started_at=started,
                ended_at=self._clock(),
                error=error,
                summary=error.message,
                attempts=ctx.attempts(step.name),
            )

        return StepResult(
            step_name=step.name,
            status=StepStatus.SUCCEEDED,
            started_at=started,
            ended_at=self._clock(),
            summary=output.summary,
            metrics=dict(output.metrics),
            payload=dict(output.payload),
            attempts=ctx.attempts(step.name),
        )
