# src/atlas_etl/core/engine/runner.py
"""
PipelineRunner do Atlas ETL.

O runner executa um `PipelineConfig` já validado, Step a Step, aplicando a
máquina de estados por Step e as políticas de falha da run.

Máquina de estados (por Step):
    - PENDING → RUNNING → {SUCCEEDED | FAILED}
    - PENDING → SKIPPED

Um Step é SKIPPED sem executar quando:
    - `enabled: false`                          (sem erro, "disabled by config")
    - a run foi abortada                        (RunAborted)
    - um dataset consumido nunca é produzido    (UnknownDatasetError)
    - um dataset consumido não foi materializado ou um Step de `depends_on`
      não foi bem-sucedido                      (DependencyNotSatisfied)

Políticas:
    - on_step_failure=abort: a primeira falha (não-validação) encerra a run;
      os Steps restantes são registrados como SKIPPED ("run aborted").
      Uma referência a dataset nunca produzido também aborta a run.
    - on_step_failure=skip_dependents: a falha apenas propaga SKIPPED,
      transitivamente, aos dependentes; Steps independentes seguem.
    - on_validation_failure=abort|continue: governa exclusivamente falhas
      ValidationMismatchError de Steps validate. Em `continue` a falha fica
      registrada mas não reprova a run.

Status da run:
    - FAILED se a run foi abortada, se algum Step falhou (exceto validação
      tolerada) ou se algum Step foi pulado por dependência não satisfeita
    - SUCCEEDED caso contrário (Steps desabilitados não reprovam a run)

Concorrência (opcional, `max_workers > 1`):
    - Steps são agrupados em waves pelo planner; Steps de uma mesma wave são
      independentes e executam em um ThreadPoolExecutor
    - resultados e eventos terminais são consolidados na ordem declarada

Rastreabilidade:
    - um evento por transição de estado: LogSink, `RunContext.events` e
      logger `logging` do módulo

Invariantes:
    - Cada Step é executado no máximo uma vez por run
    - Todo Step declarado aparece no PipelineResult, na ordem declarada
    - Nenhuma falha é silenciosamente ignorada
"""

from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from atlas_etl.core.config.errors import DuplicateDatasetDeclarationError
from atlas_etl.core.config.settings import RunSettings, resolve_settings
from atlas_etl.core.errors import (
    VALIDATION_MISMATCH,
    ErrorPayload,
    dataset_never_produced,
    dependency_not_satisfied,
    run_aborted,
)
from atlas_etl.core.pipeline.context import RunContext
from atlas_etl.core.pipeline.types import (
    PipelineConfig,
    PipelineResult,
    RunStatus,
    StepDefinition,
    StepResult,
    StepStatus,
    StepType,
)
from atlas_etl.core.traceability.lineage import LineageSink
from atlas_etl.core.traceability.log_sink import LogRecord, LogSink

from .dispatcher import StepDispatcher
from .planner import ExecutionPlan, plan_execution
from .resilience import CollaboratorGuard


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_LEVELS = {
    StepStatus.RUNNING: ("info", logging.INFO),
    StepStatus.SUCCEEDED: ("info", logging.INFO),
    StepStatus.FAILED: ("error", logging.ERROR),
    StepStatus.SKIPPED: ("warning", logging.WARNING),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _RunState:
    results: Dict[str, StepResult] = field(default_factory=dict)
    aborted_by: Optional[str] = None
    tolerated: List[str] = field(default_factory=list)


class PipelineRunner:
    """Executor canônico de um PipelineConfig."""

    def __init__(
        self,
        config: PipelineConfig,
        *,
        settings: Optional[RunSettings] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        dispatcher: Optional[StepDispatcher] = None,
        log_sink: Optional[LogSink] = None,
        lineage_sink: Optional[LineageSink] = None,
        base_dir: Optional[Union[str, Path]] = None,
        run_id: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Clock = _utcnow,
    ) -> None:
        self.config = config
        self.settings = settings if settings is not None else resolve_settings(config.settings, overrides)
        self.dispatcher = dispatcher if dispatcher is not None else StepDispatcher(clock=clock)
        self.log_sink = log_sink
        self.lineage_sink = lineage_sink
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self.run_id = run_id
        self._sleep = sleep
        self._clock = clock
        self.last_context: Optional[RunContext] = None
        self.last_plan: Optional[ExecutionPlan] = None

    # ------------------------------------------------------------------
    # Eventos
    # ------------------------------------------------------------------
    def _transition(self, ctx: RunContext, step_name: str, status: StepStatus, message: str, **extra: Any) -> None:
        if self.log_sink is not None:
            self.log_sink.append(LogRecord(self._clock(), step_name, status.value, message))
        level, py_level = _LEVELS[status]
        ctx.log(step_id=step_name, level=level, message=message, status=status.value, **extra)
        logger.log(py_level, "[%s] %s %s: %s", ctx.run_id, step_name, status.value, message)

    def _skip(self, ctx: RunContext, state: _RunState, step: StepDefinition, summary: str, error: Optional[ErrorPayload] = None) -> None:
        now = self._clock()
        result = StepResult(
            step_name=step.name,
            status=StepStatus.SKIPPED,
            started_at=now,
            ended_at=now,
            error=error,
            summary=summary,
        )
        state.results[step.name] = result
        extra = {"error_kind": error.kind} if error is not None else {}
        self._transition(ctx, step.name, StepStatus.SKIPPED, summary, **extra)

    # ------------------------------------------------------------------
    # Decisões por Step
    # ------------------------------------------------------------------
    def _precheck(self, ctx: RunContext, state: _RunState, plan: ExecutionPlan, step: StepDefinition) -> bool:
        """Decide PENDING → SKIPPED. Retorna True se o Step pode executar."""
        if state.aborted_by is not None:
            self._skip(ctx, state, step, "run aborted", run_aborted(step=step.name, failed_step=state.aborted_by))
            return False

        if not step.enabled:
            self._skip(ctx, state, step, "disabled by config")
            return False

        dangling = plan.dangling.get(step.name, ())
        if dangling:
            error = dataset_never_produced(dataset=dangling[0], step=step.name)
            self._skip(ctx, state, step, error.message, error)
            if self.settings.on_step_failure == "abort":
                state.aborted_by = step.name
            return False

        failed_steps = [
            d for d in step.depends_on
            if d not in state.results or state.results[d].status != StepStatus.SUCCEEDED
        ]
        missing = [d for d in step.consumes() if not ctx.registry.is_materialized(d)]
        if failed_steps or missing:
            error = dependency_not_satisfied(step=step.name, datasets=missing, steps=failed_steps)
            blocked = ", ".join(missing + failed_steps)
            self._skip(ctx, state, step, f"upstream not available: {blocked}", error)
            return False

        return True

    def _settle(self, ctx: RunContext, state: _RunState, step: StepDefinition, result: StepResult) -> None:
        warnings = ctx.warnings.get(step.name)
        if warnings:
            result = replace(result, payload={**result.payload, "warnings": list(warnings)})
        state.results[step.name] = result

        if result.status == StepStatus.SUCCEEDED:
            self._transition(ctx, step.name, StepStatus.SUCCEEDED, result.summary, metrics=dict(result.metrics))
            return

        self._transition(
            ctx,
            step.name,
            StepStatus.FAILED,
            result.summary,
            error_kind=result.error_kind,
            attempts=result.attempts,
        )

        if step.type == StepType.VALIDATE and result.error_kind == VALIDATION_MISMATCH:
            if self.settings.on_validation_failure == "continue":
                state.tolerated.append(step.name)
                return
            state.aborted_by = step.name
            return

        if self.settings.on_step_failure == "abort":
            state.aborted_by = step.name

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------
    def _run_wave(self, ctx: RunContext, state: _RunState, plan: ExecutionPlan, wave: List[StepDefinition], executor: Optional[ThreadPoolExecutor]) -> None:
        if executor is None or len(wave) == 1:
            for step in wave:
                if not self._precheck(ctx, state, plan, step):
                    continue
                self._transition(ctx, step.name, StepStatus.RUNNING, "started")
                self._settle(ctx, state, step, self.dispatcher.execute(step, ctx))
            return

        runnable = [s for s in wave if self._precheck(ctx, state, plan, s)]
        for step in runnable:
            self._transition(ctx, step.name, StepStatus.RUNNING, "started")
        futures = [(s, executor.submit(self.dispatcher.execute, s, ctx)) for s in runnable]
        for step, future in futures:
            self._settle(ctx, state, step, future.result())

    def _new_context(self) -> RunContext:
        created = self._clock()
        guard = CollaboratorGuard(self.settings, sleep=self._sleep)
        return RunContext(
            run_id=self.run_id or uuid.uuid4().hex,
            created_at=created,
            settings=self.settings,
            base_dir=self.base_dir,
            guard=guard,
            lineage_sink=self.lineage_sink,
            meta={"pipeline_name": self.config.pipeline_name},
        )

    def run(self, inputs: Optional[Mapping[str, Any]] = None) -> PipelineResult:
        """
        Executa o pipeline e retorna o PipelineResult final.

        Args:
            inputs: datasets pré-existentes da run (nome → pandas.DataFrame).

        Raises:
            ConfigError: somente antes de qualquer Step executar.
        """
        inputs = dict(inputs or {})
        config = self.config
        if inputs:
            config = replace(config, inputs=tuple(dict.fromkeys(config.inputs + tuple(inputs))))
        plan = plan_execution(config)
        for name in inputs:
            producer = plan.producer_of(name)
            if producer is not None:
                raise DuplicateDatasetDeclarationError(
                    f"Input '{name}' também é produzido pelo Step '{producer}'"
                )

        ctx = self._new_context()
        for name, data in inputs.items():
            ctx.registry.register_input(name, data)
        self.last_context = ctx
        self.last_plan = plan

        started = ctx.created_at
        logger.info(
            "run %s started: pipeline=%s steps=%d policy=%s/%s workers=%d",
            ctx.run_id,
            config.pipeline_name,
            len(config.steps),
            self.settings.on_step_failure,
            self.settings.on_validation_failure,
            self.settings.max_workers,
        )

        state = _RunState()
        concurrent = self.settings.max_workers > 1
        executor = ThreadPoolExecutor(max_workers=self.settings.max_workers) if concurrent else None
        try:
            for wave in plan.waves(concurrent=concurrent):
                self._run_wave(ctx, state, plan, wave, executor)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        results = tuple(state.results[s.name] for s in config.steps)
        failed = state.aborted_by is not None or any(
            (r.status == StepStatus.FAILED and r.step_name not in state.tolerated)
            or (r.status == StepStatus.SKIPPED and r.error is not None)
            for r in results
        )

        result = PipelineResult(
            pipeline_name=config.pipeline_name,
            run_id=ctx.run_id,
            status=RunStatus.FAILED if failed else RunStatus.SUCCEEDED,
            steps=results,
            started_at=started,
            ended_at=self._clock(),
            aborted=state.aborted_by is not None,
        )
        logger.info("run %s finished: status=%s aborted=%s", ctx.run_id, result.status.value, result.aborted)
        return result


def run_pipeline(config: PipelineConfig, **kwargs: Any) -> PipelineResult:
    """Atalho: cria um PipelineRunner e executa uma run."""
    inputs = kwargs.pop("inputs", None)
    return PipelineRunner(config, **kwargs).run(inputs)
