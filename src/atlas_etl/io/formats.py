"""
Adapters de formato (colaboradores externos): leitura e escrita de datasets.

Formatos suportados (v1), conjunto enumerado e explícito:
    - csv     → texto delimitado (delimiter configurável, default ",")
    - tsv     → texto delimitado por tab
    - parquet → requer pandas + engine parquet (pyarrow)
    - jsonl   → um objeto JSON por linha

Decisões arquiteturais:
    - O formato é verificado ANTES de qualquer I/O (UnsupportedFormatError)
    - mode=overwrite escreve de forma atômica (arquivo temporário + replace),
      sem índice, o que torna a escrita idempotente
    - mode=append preserva as linhas existentes e acrescenta as novas ao final
    - uma escrita cujo timeout expirou não efetiva o destino

Limites explícitos (v1):
    - NÃO infere formato pela extensão
    - NÃO faz particionamento nem escrita distribuída
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import pandas as pd

from atlas_etl.core.engine.resilience import raise_if_abandoned
from atlas_etl.core.exceptions import SchemaMismatchError, UnsupportedFormatError


SUPPORTED_FORMATS = ("csv", "tsv", "parquet", "jsonl")


@dataclass(frozen=True)
class WriteReport:
    path: str
    format: str
    mode: str
    rows_written: int
    rows_total: int


def ensure_supported_format(fmt: Any) -> str:
    if not isinstance(fmt, str) or fmt.lower() not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(fmt, supported=SUPPORTED_FORMATS)
    return fmt.lower()


def _delimiter(fmt: str, options: Mapping[str, Any]) -> str:
    if fmt == "tsv":
        return "\t"
    return str(options.get("delimiter", ","))


def read_dataset(path: Path, fmt: str, options: Optional[Mapping[str, Any]] = None) -> pd.DataFrame:
    """Lê um dataset externo no formato declarado."""
    fmt = ensure_supported_format(fmt)
    options = options or {}

    if fmt in ("csv", "tsv"):
        return pd.read_csv(path, sep=_delimiter(fmt, options))
    if fmt == "parquet":
        return pd.read_parquet(path)
    return pd.read_json(path, orient="records", lines=True)


def _write_atomic(path: Path, writer: Callable[[Path], None]) -> None:
    """Escreve em arquivo temporário no mesmo diretório e substitui o destino."""
    tmp_fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", dir=str(path.parent))
    os.close(tmp_fd)
    tmp_path = Path(tmp_name)
    try:
        writer(tmp_path)
        raise_if_abandoned()
        tmp_path.replace(path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def _to_jsonl(df: pd.DataFrame) -> str:
    if df.empty:
        return ""
    text = df.to_json(orient="records", lines=True, date_format="iso")
    return text if text.endswith("\n") else text + "\n"


def _write_full(df: pd.DataFrame, path: Path, fmt: str, options: Mapping[str, Any]) -> None:
    if fmt in ("csv", "tsv"):
        _write_atomic(path, lambda p: df.to_csv(p, index=False, sep=_delimiter(fmt, options)))
    elif fmt == "parquet":
        _write_atomic(path, lambda p: df.to_parquet(p, index=False))
    else:
        _write_atomic(path, lambda p: p.write_text(_to_jsonl(df), encoding="utf-8"))


def _aligned(df: pd.DataFrame, existing_columns: list, path: Path) -> pd.DataFrame:
    if set(existing_columns) != set(str(c) for c in df.columns):
        raise SchemaMismatchError(
            f"Cannot append to {path}: columns differ from existing target",
            details={
                "path": str(path),
                "existing_columns": list(existing_columns),
                "columns": [str(c) for c in df.columns],
            },
        )
    return df[list(existing_columns)]


def write_dataset(
    df: pd.DataFrame,
    path: Path,
    fmt: str,
    *,
    mode: str = "overwrite",
    options: Optional[Mapping[str, Any]] = None,
) -> WriteReport:
    """Escreve um dataset no destino externo (overwrite atômico ou append)."""
    fmt = ensure_supported_format(fmt)
    options = options or {}
    if mode not in ("overwrite", "append"):
        raise ValueError(f"Unsupported write mode: {mode}")

    path.parent.mkdir(parents=True, exist_ok=True)
    rows = int(df.shape[0])

    if mode == "overwrite" or not path.exists() or path.stat().st_size == 0:
        _write_full(df, path, fmt, options)
        return WriteReport(str(path), fmt, mode, rows, rows)

    if fmt in ("csv", "tsv"):
        sep = _delimiter(fmt, options)
        header = list(pd.read_csv(path, sep=sep, nrows=0).columns)
        aligned = _aligned(df, header, path)
        raise_if_abandoned()
        with path.open("a", encoding="utf-8", newline="") as f:
            aligned.to_csv(f, index=False, header=False, sep=sep)
        total = int(pd.read_csv(path, sep=sep).shape[0])
        return WriteReport(str(path), fmt, mode, rows, total)

    if fmt == "parquet":
        existing = pd.read_parquet(path)
        combined = pd.concat(
            [existing, _aligned(df, [str(c) for c in existing.columns], path)],
            ignore_index=True,
        )
        _write_atomic(path, lambda p: combined.to_parquet(p, index=False))
        return WriteReport(str(path), fmt, mode, rows, int(combined.shape[0]))

    raise_if_abandoned()
    with path.open("a", encoding="utf-8") as f:
        f.write(_to_jsonl(df))
    total = sum(1 for line in path.read_text(encoding="utf-8").splitlines() if line.strip())
    return WriteReport(str(path), fmt, mode, rows, total)
