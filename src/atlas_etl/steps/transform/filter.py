"""Handler canônico: transform/filter (v1).

Responsabilidades:
- consumir um dataset materializado (`source`)
- manter apenas as linhas que satisfazem `condition`
- publicar o resultado como `target`, com o mesmo schema de `source`

Config esperada (exemplo):
- step_name: paid_orders
  type: transform
  subtype: filter
  params:
    source: orders
    condition: "status = 'paid' and amount >= 10"
    target: orders_paid

Limites explícitos (v1):
- NÃO reordena linhas (ordem relativa de `source` é preservada)
- NÃO cria colunas derivadas
- a linguagem de `condition` está documentada em `predicate.py`
"""

from __future__ import annotations

from dataclasses import dataclass

from atlas_etl.core.pipeline.context import RunContext
from atlas_etl.core.pipeline.types import StepDefinition, StepOutput

from .predicate import evaluate, parse_condition


@dataclass
class FilterHandler:
    """Filtro de linhas por predicado declarativo."""

    name: str = "transform.filter"

    def run(self, step: StepDefinition, ctx: RunContext) -> StepOutput:
        params = step.params
        condition = params["condition"]
        tree = parse_condition(condition)

        source = ctx.resolve(params["source"], step=step)
        df = source.data
        mask = evaluate(tree, df)
        out = df[mask].reset_index(drop=True)

        dataset = ctx.publish(params["target"], out, step=step, schema=source.schema)

        rows_in = int(df.shape[0])
        rows_out = int(out.shape[0])
        ctx.log(
            step_id=step.name,
            level="info",
            message="filter applied",
            condition=condition,
            rows_in=rows_in,
            rows_out=rows_out,
        )

        return StepOutput(
            summary=f"kept {rows_out} of {rows_in} rows from '{source.name}' into '{dataset.name}'",
            metrics={"rows_in": rows_in, "rows_out": rows_out, "rows_dropped": rows_in - rows_out},
            payload={"condition": condition, "source": source.name, "target": dataset.name},
        )
