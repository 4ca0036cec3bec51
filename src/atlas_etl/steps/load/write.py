"""Handler canônico: load (v1).

Responsabilidades:
- escrever um dataset materializado (`source`) no destino externo `target`
- respeitar `format` e `mode` (overwrite | append)

Config esperada (exemplo):
- step_name: load_orders
  type: load
  params:
    source: orders_paid
    target: out/orders_paid.parquet
    format: parquet      # default aplicado pelo loader
    mode: overwrite      # default aplicado pelo loader

Garantias:
- overwrite é idempotente: mesma entrada, mesmo conteúdo no destino
- append é monotônico: linhas existentes nunca são removidas ou reordenadas

Limites explícitos (v1):
- NÃO produz dataset no registry
- NÃO cria partições nem múltiplos arquivos
"""

from __future__ import annotations

from dataclasses import dataclass

from atlas_etl.core.pipeline.context import RunContext
from atlas_etl.core.pipeline.types import StepDefinition, StepOutput
from atlas_etl.io.formats import ensure_supported_format, write_dataset


@dataclass
class LoadHandler:
    name: str = "load"

    def run(self, step: StepDefinition, ctx: RunContext) -> StepOutput:
        params = step.params
        fmt = ensure_supported_format(params.get("format"))
        mode = params.get("mode", "overwrite")

        source = ctx.resolve(params["source"], step=step)
        path = ctx.resolve_path(params["target"])
        options = {k: params[k] for k in ("delimiter",) if k in params}

        report = ctx.call_external(step, write_dataset, source.data, path, fmt, mode=mode, options=options)

        ctx.log(
            step_id=step.name,
            level="info",
            message="dataset loaded",
            source=source.name,
            target_path=report.path,
            target_type=fmt,
            mode=mode,
            rows_written=report.rows_written,
        )

        return StepOutput(
            summary=f"wrote {report.rows_written} rows of '{source.name}' to {report.path} ({mode})",
            metrics={"rows_written": report.rows_written, "rows_total": report.rows_total},
            payload={"source": source.name, "target": {"path": report.path, "type": fmt, "mode": mode}},
        )
