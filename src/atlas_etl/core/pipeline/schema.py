"""
Schema de datasets: inferência a partir de DataFrames e coerção declarada.

Tipos canônicos (v1): int, float, bool, string, datetime, category, object.

Limites explícitos (v1):
- NÃO valida conteúdo além da coerção declarada
- NÃO normaliza nomes de colunas
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

import pandas as pd
from pandas.api import types as ptypes

from atlas_etl.core.exceptions import SchemaMismatchError, UnknownColumnError

from .types import Column, Schema


CANONICAL_DTYPES = ("int", "float", "bool", "string", "datetime", "category", "object")

# dtype canônico -> dtype pandas usado na coerção
_PANDAS_DTYPES: Dict[str, str] = {
    "int": "Int64",
    "float": "float64",
    "bool": "boolean",
    "string": "string",
    "category": "category",
    "object": "object",
}


def canonical_dtype(series: pd.Series) -> str:
    dtype = series.dtype
    if ptypes.is_bool_dtype(dtype):
        return "bool"
    if ptypes.is_integer_dtype(dtype):
        return "int"
    if ptypes.is_float_dtype(dtype):
        return "float"
    if ptypes.is_datetime64_any_dtype(dtype):
        return "datetime"
    if isinstance(dtype, pd.CategoricalDtype):
        return "category"
    if ptypes.is_string_dtype(dtype):
        # colunas object só com strings (ou nulos) são reportadas como string
        non_null = series.dropna()
        if non_null.empty or all(isinstance(v, str) for v in non_null):
            return "string"
    return "object"


def infer_schema(df: pd.DataFrame) -> Schema:
    """Infere o schema ordenado de um DataFrame."""
    return tuple(Column(name=str(col), dtype=canonical_dtype(df[col])) for col in df.columns)


def apply_declared_columns(df: pd.DataFrame, columns: Mapping[str, Any]) -> pd.DataFrame:
    """Aplica o schema declarado (`{coluna: dtype}`) sobre o DataFrame lido.

    Regras v1:
    - toda coluna declarada deve existir no dado lido (UnknownColumnError)
    - dtype deve ser canônico (SchemaMismatchError)
    - a falha de coerção é um SchemaMismatchError com a coluna afetada
    """
    out = df.copy()
    for name, dtype in columns.items():
        if name not in out.columns:
            raise UnknownColumnError(str(name), available=[str(c) for c in out.columns])
        if dtype not in CANONICAL_DTYPES:
            raise SchemaMismatchError(
                f"Unsupported declared dtype '{dtype}' for column '{name}'",
                details={"column": name, "dtype": dtype, "supported": list(CANONICAL_DTYPES)},
            )
        try:
            if dtype == "datetime":
                out[name] = pd.to_datetime(out[name])
            else:
                out[name] = out[name].astype(_PANDAS_DTYPES[dtype])
        except (TypeError, ValueError) as e:
            raise SchemaMismatchError(
                f"Column '{name}' cannot be cast to {dtype}",
                details={"column": name, "dtype": dtype, "error": str(e)},
            ) from e
    return out
