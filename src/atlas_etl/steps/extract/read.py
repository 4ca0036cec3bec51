"""Handler canônico: extract (v1).

Responsabilidades:
- ler dataset de um `source` externo no `format` declarado
- aplicar o schema declarado (`columns`) ou inferir o schema do dado lido
- registrar e materializar `target` de forma atômica

Config esperada (exemplo):
- step_name: extract_orders
  type: extract
  params:
    source: data/orders.csv
    target: orders
    format: csv          # default aplicado pelo loader
    delimiter: ";"       # opcional (csv)
    columns:             # opcional
      id: int
      amount: float

Limites explícitos (v1):
- NÃO normaliza valores
- NÃO executa auditorias de qualidade
- NÃO registra dataset parcial: formato inválido ou falha de leitura
  deixam o registry inalterado
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from atlas_etl.core.exceptions import SchemaMismatchError
from atlas_etl.core.pipeline.context import RunContext
from atlas_etl.core.pipeline.schema import apply_declared_columns, infer_schema
from atlas_etl.core.pipeline.types import StepDefinition, StepOutput
from atlas_etl.io.formats import ensure_supported_format, read_dataset


def _read_options(params: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: params[k] for k in ("delimiter",) if k in params}


@dataclass
class ExtractHandler:
    """Lê um dataset externo e o publica no registry da run."""

    name: str = "extract"

    def run(self, step: StepDefinition, ctx: RunContext) -> StepOutput:
        params = step.params
        fmt = ensure_supported_format(params.get("format"))
        path = ctx.resolve_path(params["source"])

        df = ctx.call_external(step, read_dataset, path, fmt, _read_options(params))

        columns = params.get("columns")
        if columns is not None:
            if not isinstance(columns, Mapping):
                raise SchemaMismatchError(
                    "params.columns must be a mapping of column -> dtype",
                    details={"step": step.name},
                )
            df = apply_declared_columns(df, columns)

        schema = infer_schema(df)
        dataset = ctx.publish(params["target"], df, step=step, schema=schema)

        ctx.log(
            step_id=step.name,
            level="info",
            message="dataset extracted",
            source_path=str(path),
            source_type=fmt,
            target=dataset.name,
            rows=int(df.shape[0]),
        )

        return StepOutput(
            summary=f"extracted {int(df.shape[0])} rows into '{dataset.name}'",
            metrics={"rows": int(df.shape[0]), "columns": len(schema)},
            payload={
                "source": {"path": str(path), "type": fmt},
                "target": dataset.name,
                "schema": [[c.name, c.dtype] for c in schema],
            },
        )
