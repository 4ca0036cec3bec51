# src/atlas_etl/core/config/settings.py
"""
Políticas de execução de uma run (RunSettings).

As políticas efetivas são resolvidas em três camadas, sempre via
`deep_merge` (a camada seguinte tem precedência):

    1. DEFAULT_SETTINGS (defaults do Engine)
    2. bloco `settings` do documento de pipeline
    3. overrides explícitos (CLI/API), ignorando valores None

Políticas (v1):
    - on_step_failure: abort | skip_dependents       (default: abort)
    - on_validation_failure: abort | continue        (default: continue)
    - max_workers: int >= 1                          (default: 1, sequencial)
    - step_timeout_seconds: float > 0 | None         (default: None)
    - retry.max_retries: int >= 0                    (default: 2)
    - retry.backoff_seconds: float >= 0              (default: 0.5)

Limites explícitos:
    - Não executa Steps
    - Não lê arquivos
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidSettingsError
from .merge import deep_merge


ON_STEP_FAILURE_CHOICES = ("abort", "skip_dependents")
ON_VALIDATION_FAILURE_CHOICES = ("abort", "continue")

DEFAULT_SETTINGS: Dict[str, Any] = {
    "on_step_failure": "abort",
    "on_validation_failure": "continue",
    "max_workers": 1,
    "step_timeout_seconds": None,
    "retry": {
        "max_retries": 2,
        "backoff_seconds": 0.5,
    },
}


@dataclass(frozen=True)
class RunSettings:
    """Políticas efetivas e validadas de uma run."""

    on_step_failure: str = "abort"
    on_validation_failure: str = "continue"
    max_workers: int = 1
    step_timeout_seconds: Optional[float] = None
    max_retries: int = 2
    backoff_seconds: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _flatten_overrides(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    retry: Dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key in ("max_retries", "backoff_seconds"):
            retry[key] = value
        else:
            flat[key] = value
    if retry:
        flat["retry"] = retry
    return flat


def _expect(cond: bool, msg: str) -> None:
    if not cond:
        raise InvalidSettingsError(msg)


def resolve_settings(
    document_settings: Optional[Mapping[str, Any]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> RunSettings:
    """
    Resolve e valida as políticas efetivas de uma run.

    Args:
        document_settings: bloco `settings` do documento (pode ser None).
        overrides: overrides planos (`on_step_failure`, `max_retries`, ...);
            valores None são ignorados.

    Returns:
        RunSettings: políticas imutáveis e validadas.

    Raises:
        ConfigTypeConflictError: conflito estrutural no merge.
        InvalidSettingsError: valor fora do domínio permitido.
    """
    effective = deep_merge(DEFAULT_SETTINGS, dict(document_settings or {}))
    if overrides:
        effective = deep_merge(effective, _flatten_overrides(overrides))

    unknown = sorted(set(effective) - set(DEFAULT_SETTINGS))
    _expect(not unknown, f"Unknown settings: {unknown}")

    on_step_failure = effective["on_step_failure"]
    _expect(
        on_step_failure in ON_STEP_FAILURE_CHOICES,
        f"on_step_failure must be one of {ON_STEP_FAILURE_CHOICES}, got {on_step_failure!r}",
    )
    on_validation_failure = effective["on_validation_failure"]
    _expect(
        on_validation_failure in ON_VALIDATION_FAILURE_CHOICES,
        f"on_validation_failure must be one of {ON_VALIDATION_FAILURE_CHOICES}, "
        f"got {on_validation_failure!r}",
    )

    max_workers = effective["max_workers"]
    _expect(
        isinstance(max_workers, int) and not isinstance(max_workers, bool) and max_workers >= 1,
        "max_workers must be an integer >= 1",
    )

    timeout = effective["step_timeout_seconds"]
    _expect(
        timeout is None or (isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0),
        "step_timeout_seconds must be a positive number or null",
    )

    retry = effective.get("retry") or {}
    max_retries = retry.get("max_retries", 0)
    backoff = retry.get("backoff_seconds", 0.0)
    _expect(
        isinstance(max_retries, int) and not isinstance(max_retries, bool) and max_retries >= 0,
        "retry.max_retries must be an integer >= 0",
    )
    _expect(
        isinstance(backoff, (int, float)) and not isinstance(backoff, bool) and backoff >= 0,
        "retry.backoff_seconds must be a number >= 0",
    )

    return RunSettings(
        on_step_failure=on_step_failure,
        on_validation_failure=on_validation_failure,
        max_workers=max_workers,
        step_timeout_seconds=float(timeout) if timeout is not None else None,
        max_retries=max_retries,
        backoff_seconds=float(backoff),
    )
