"""Handler canônico: validate (v1).

Responsabilidades:
- verificar o contrato de colunas de um dataset materializado (`source`)
- produzir um diff estruturado `{missing, extra}` contra `expected_columns`
- falhar com ValidationMismatchError quando o diff não é vazio

Config esperada (exemplo):
- step_name: check_orders
  type: validate
  params:
    source: orders
    expected_columns: [id, amount, date]
    ordered: false       # default aplicado pelo loader

Limites explícitos (v1):
- compara apenas NOMES de colunas (não dtypes nem valores)
- NÃO produz dataset
- a decisão de abortar ou seguir a run pertence ao runner
  (`on_validation_failure`), nunca a este handler
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Sequence

from atlas_etl.core.exceptions import ValidationMismatchError
from atlas_etl.core.pipeline.context import RunContext
from atlas_etl.core.pipeline.types import StepDefinition, StepOutput


def column_diff(actual: Sequence[str], expected: Sequence[str], *, ordered: bool = False) -> Dict[str, Any]:
    actual_set, expected_set = set(actual), set(expected)
    missing = expected_set - actual_set
    extra = actual_set - expected_set
    order_mismatch = ordered and not missing and not extra and list(actual) != list(expected)
    return {"missing": missing, "extra": extra, "order_mismatch": order_mismatch}


@dataclass
class ValidateHandler:
    name: str = "validate"

    def run(self, step: StepDefinition, ctx: RunContext) -> StepOutput:
        params = step.params
        source = ctx.resolve(params["source"], step=step)
        expected = list(params["expected_columns"])
        ordered = bool(params.get("ordered", False))

        diff = column_diff(source.column_names, expected, ordered=ordered)
        if diff["missing"] or diff["extra"] or diff["order_mismatch"]:
            ctx.log(
                step_id=step.name,
                level="warning",
                message="column contract violated",
                missing=sorted(diff["missing"]),
                extra=sorted(diff["extra"]),
                order_mismatch=diff["order_mismatch"],
            )
            raise ValidationMismatchError(
                dataset=source.name,
                missing=diff["missing"],
                extra=diff["extra"],
                order_mismatch=diff["order_mismatch"],
            )

        ctx.log(step_id=step.name, level="info", message="column contract satisfied", source=source.name)
        return StepOutput(
            summary=f"'{source.name}' matches {len(expected)} expected columns",
            metrics={"columns": len(expected)},
            payload={"source": source.name, "missing": [], "extra": [], "order_mismatch": False},
        )
