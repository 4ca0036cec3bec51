"""Handler canônico: transform/join (v1).

Responsabilidades:
- consumir dois datasets materializados (`left`, `right`)
- combiná-los por `join_col` segundo `join_type` (inner | left | right | full)
- publicar o resultado como `target`

Schema de saída:
- colunas de `left` na ordem, depois colunas de `right` na ordem, sem a
  chave duplicada
- política de colisão (v1): uma coluna não-chave presente nos dois lados é
  renomeada em AMBOS os lados para `<dataset>.<coluna>`
  (ex.: `orders.status`, `payments.status`)
- self-join (`left == right`): os prefixos passam a ser `left.` e `right.`
  (ex.: `left.amount`, `right.amount`)

Semântica de linhas:
- inner: linhas de `left` com correspondência, na ordem de `left`
- left: todas as linhas de `left`, na ordem de `left`; lado direito nulo sem correspondência
- right: todas as linhas de `right`, na ordem de `right`; lado esquerdo nulo sem correspondência
- full: resultado de `left`, seguido das linhas de `right` sem correspondência
- chaves nulas nunca casam (semântica relacional)

Limites explícitos (v1):
- NÃO suporta chave composta
- NÃO faz coerção de tipos entre as chaves dos dois lados: chaves de
  tipos incompatíveis falham com SchemaMismatchError
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

import pandas as pd

from atlas_etl.core.exceptions import SchemaMismatchError
from atlas_etl.core.pipeline.context import RunContext
from atlas_etl.core.pipeline.types import Dataset, StepDefinition, StepOutput


def _prefixed(df: pd.DataFrame, prefix: str, overlap: List[str]) -> pd.DataFrame:
    return df.rename(columns={c: f"{prefix}.{c}" for c in overlap})


def _prefixes(left: Dataset, right: Dataset) -> Tuple[str, str]:
    if left.name == right.name:
        return "left", "right"
    return left.name, right.name


def _indicator_name(*frames: pd.DataFrame) -> str:
    taken = {str(c) for df in frames for c in df.columns}
    name = "_atlas_join_match"
    while name in taken:
        name = "_" + name
    return name


def _match(primary: pd.DataFrame, secondary: pd.DataFrame, key: str, *, keep_unmatched: bool) -> pd.DataFrame:
    """Left join de `primary` com `secondary` preservando a ordem de `primary`."""
    candidates = secondary[secondary[key].notna()]
    indicator = _indicator_name(primary, candidates)
    try:
        merged = primary.merge(candidates, on=key, how="left", sort=False, indicator=indicator)
    except ValueError as e:
        raise SchemaMismatchError(
            f"Join column '{key}' has incompatible types: {primary[key].dtype} vs {secondary[key].dtype}",
            details={"join_col": key, "dtypes": [str(primary[key].dtype), str(secondary[key].dtype)]},
            hint="Declare os mesmos tipos para a chave em `columns` dos extracts.",
        ) from e
    if not keep_unmatched:
        merged = merged[merged[indicator] == "both"]
    return merged.drop(columns=indicator).reset_index(drop=True)


def join_frames(
    left: Dataset,
    right: Dataset,
    key: str,
    join_type: str,
) -> pd.DataFrame:
    missing: Dict[str, List[str]] = {}
    for ds in (left, right):
        if key not in ds.column_names:
            missing[ds.name] = ds.column_names
    if missing:
        raise SchemaMismatchError(
            f"Join column '{key}' not present in: {sorted(missing)}",
            details={"join_col": key, "datasets": missing},
            hint="join_col deve existir nos schemas de left e right.",
        )

    ldf: pd.DataFrame = left.data
    rdf: pd.DataFrame = right.data
    overlap = [c for c in left.column_names if c != key and c in right.column_names]
    left_prefix, right_prefix = _prefixes(left, right)
    ldf = _prefixed(ldf, left_prefix, overlap)
    rdf = _prefixed(rdf, right_prefix, overlap)

    out_columns = list(ldf.columns) + [c for c in rdf.columns if c != key]

    if join_type in ("inner", "left"):
        return _match(ldf, rdf, key, keep_unmatched=(join_type == "left"))[out_columns]

    if join_type == "right":
        return _match(rdf, ldf, key, keep_unmatched=True)[out_columns]

    if join_type == "full":
        matched = _match(ldf, rdf, key, keep_unmatched=True)
        unmatched = rdf[~rdf[key].isin(ldf[key].dropna())]
        rest = unmatched.reindex(columns=out_columns)
        if rest.empty:
            return matched[out_columns]
        return pd.concat([matched[out_columns], rest], ignore_index=True)

    raise ValueError(f"Unsupported join_type: {join_type}")


@dataclass
class JoinHandler:
    """Join relacional entre dois datasets do registry."""

    name: str = "transform.join"

    def run(self, step: StepDefinition, ctx: RunContext) -> StepOutput:
        params = step.params
        left = ctx.resolve(params["left"], step=step)
        right = ctx.resolve(params["right"], step=step)
        join_type = params.get("join_type", "inner")

        df = join_frames(left, right, params["join_col"], join_type)
        dataset = ctx.publish(params["target"], df, step=step)

        overlap = [c for c in left.column_names if c != params["join_col"] and c in right.column_names]
        if overlap:
            ctx.add_warning(
                step_id=step.name,
                message=f"overlapping columns prefixed on both sides: {overlap}",
            )

        ctx.log(
            step_id=step.name,
            level="info",
            message="join applied",
            join_type=join_type,
            rows_left=int(left.data.shape[0]),
            rows_right=int(right.data.shape[0]),
            rows_out=int(df.shape[0]),
        )

        return StepOutput(
            summary=f"{join_type} join of '{left.name}' and '{right.name}' -> '{dataset.name}'",
            metrics={
                "rows_left": int(left.data.shape[0]),
                "rows_right": int(right.data.shape[0]),
                "rows_out": int(df.shape[0]),
            },
            payload={
                "join_col": params["join_col"],
                "join_type": join_type,
                "prefixed_columns": overlap,
                "target": dataset.name,
            },
        )
