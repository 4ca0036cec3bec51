# src/atlas_etl/core/engine/resilience.py
"""
Timeout e retry de chamadas a colaboradores externos.

Somente as fronteiras com colaboradores externos (leitura de extract,
escrita de load) passam por aqui, via `RunContext.call_external`.

Regras (v1):
    - cada chamada respeita o timeout do Step: `params.timeout_seconds`
      ou, na ausência, `settings.step_timeout_seconds` (None = sem timeout)
    - timeout expirado → StepTimeoutError (kind "TimeoutError"), nunca re-tentado
    - falhas transitórias são re-tentadas até `max_retries` vezes, com
      backoff exponencial `backoff_seconds * 2**tentativa`
    - erros de lógica (schema, dataset desconhecido, formato...) são
      permanentes e propagam na primeira ocorrência

Limites explícitos:
    - Uma chamada que excede o timeout NÃO é interrompida: a thread de
      trabalho (daemon, não segura o processo na saída) segue em segundo
      plano e seu resultado é descartado
    - Escritas abandonadas não efetivam o destino (`raise_if_abandoned`)
    - Não decide o status do Step (responsabilidade do dispatcher/runner)
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from atlas_etl.core.config.settings import RunSettings
from atlas_etl.core.exceptions import EtlException, StepTimeoutError
from atlas_etl.core.pipeline.types import StepDefinition


logger = logging.getLogger(__name__)

T = TypeVar("T")

_PERMANENT_OS_ERRORS: Tuple[type, ...] = (
    FileNotFoundError,
    FileExistsError,
    PermissionError,
    IsADirectoryError,
    NotADirectoryError,
)


def is_transient(exc: BaseException) -> bool:
    """Classifica uma exceção como transitória (elegível a retry)."""
    if isinstance(exc, EtlException):
        return exc.transient
    if isinstance(exc, _PERMANENT_OS_ERRORS):
        return False
    return isinstance(exc, (ConnectionError, TimeoutError, OSError))


_local = threading.local()


class _TimedCall(threading.Thread):
    """Executa `fn` em thread daemon e guarda resultado ou exceção."""

    def __init__(self, step: StepDefinition, timeout: float, fn: Callable[..., Any], args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> None:
        super().__init__(name=f"atlas-etl-{step.name}", daemon=True)
        self.step_name = step.name
        self.timeout_seconds = timeout
        self.abandoned = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self._call_fn = fn
        self._call_args = args
        self._call_kwargs = kwargs

    def run(self) -> None:
        _local.call = self
        try:
            self.result = self._call_fn(*self._call_args, **self._call_kwargs)
        except Exception as e:  # noqa: BLE001
            self.error = e


def raise_if_abandoned() -> None:
    """
    Interrompe uma chamada cujo timeout já expirou.

    Adapters de escrita chamam isto imediatamente antes de efetivar o
    destino, para que um Step reportado como Failed não altere o alvo depois.
    Fora de uma chamada com timeout é um no-op.
    """
    call = getattr(_local, "call", None)
    if call is not None and call.abandoned.is_set():
        raise StepTimeoutError(call.step_name, timeout_seconds=call.timeout_seconds)


def _call_with_timeout(step: StepDefinition, timeout: Optional[float], fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    if timeout is None:
        return fn(*args, **kwargs)

    call = _TimedCall(step, timeout, fn, args, kwargs)
    call.start()
    call.join(timeout)

    if call.is_alive():
        call.abandoned.set()
        raise StepTimeoutError(step.name, timeout_seconds=timeout)
    if call.error is not None:
        raise call.error
    return call.result


class CollaboratorGuard:
    """
    Política de chamada a colaboradores externos de uma run.

    Conta as tentativas por Step (`attempts`), que o dispatcher copia
    para `StepResult.attempts`.
    """

    def __init__(self, settings: RunSettings, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self.settings = settings
        self._sleep = sleep
        self._attempts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def attempts(self, step_name: str) -> int:
        with self._lock:
            return self._attempts.get(step_name, 0)

    def _count(self, step_name: str) -> None:
        with self._lock:
            self._attempts[step_name] = self._attempts.get(step_name, 0) + 1

    def timeout_for(self, step: StepDefinition) -> Optional[float]:
        value = step.params.get("timeout_seconds")
        if value is None:
            return self.settings.step_timeout_seconds
        return float(value)

    def __call__(self, step: StepDefinition, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        timeout = self.timeout_for(step)
        max_retries = self.settings.max_retries

        attempt = 0
        while True:
            self._count(step.name)
            try:
                return _call_with_timeout(step, timeout, fn, *args, **kwargs)
            except StepTimeoutError:
                raise
            except Exception as e:
                if not is_transient(e) or attempt >= max_retries:
                    raise
                delay = self.settings.backoff_seconds * (2 ** attempt)
                logger.warning(
                    "transient failure in step %s (attempt %d/%d), retrying in %.2fs: %s",
                    step.name,
                    attempt + 1,
                    max_retries + 1,
                    delay,
                    e,
                )
                self._sleep(delay)
                attempt += 1
