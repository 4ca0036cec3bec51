# tests/io/test_formats.py
"""Testes dos adapters de formato (leitura/escrita de datasets)."""

from pathlib import Path

import pandas as pd
import pytest

try:
    from atlas_etl.io.formats import (
        SUPPORTED_FORMATS,
        ensure_supported_format,
        read_dataset,
        write_dataset,
    )
    from atlas_etl.core.exceptions import UnsupportedFormatError
except Exception as e:  # noqa: BLE001
    read_dataset = write_dataset = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing format adapters. Implement:\n"
            "- src/atlas_etl/io/formats.py (read_dataset, write_dataset)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_supported_formats_are_enumerated():
    _require_imports()

    assert SUPPORTED_FORMATS == ("csv", "tsv", "parquet", "jsonl")
    assert ensure_supported_format("CSV") == "csv"


@pytest.mark.parametrize("fmt", [None, "", "xlsx", 3])
def test_unsupported_format_raises(fmt):
    _require_imports()

    with pytest.raises(UnsupportedFormatError) as exc:
        ensure_supported_format(fmt)

    assert exc.value.details["supported"] == list(SUPPORTED_FORMATS)


def test_tsv_write_then_read(tmp_path: Path, orders_df):
    _require_imports()
    path = tmp_path / "nested" / "orders.tsv"

    report = write_dataset(orders_df, path, "tsv")

    assert "\t" in path.read_text(encoding="utf-8").splitlines()[0]
    assert report.rows_written == report.rows_total == 4
    pd.testing.assert_frame_equal(read_dataset(path, "tsv"), orders_df)


def test_empty_jsonl_is_written_as_empty_file(tmp_path: Path):
    _require_imports()
    path = tmp_path / "empty.jsonl"

    report = write_dataset(pd.DataFrame({"id": []}), path, "jsonl")

    assert path.read_text(encoding="utf-8") == ""
    assert report.rows_total == 0


def test_append_to_empty_file_writes_header(tmp_path: Path, orders_df):
    _require_imports()
    path = tmp_path / "orders.csv"
    path.touch()

    write_dataset(orders_df, path, "csv", mode="append")

    assert list(pd.read_csv(path).columns) == ["id", "amount", "status"]


def test_unknown_mode_raises(tmp_path: Path, orders_df):
    _require_imports()

    with pytest.raises(ValueError):
        write_dataset(orders_df, tmp_path / "o.csv", "csv", mode="upsert")
