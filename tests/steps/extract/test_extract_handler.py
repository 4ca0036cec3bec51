# tests/steps/extract/test_extract_handler.py
"""
Testes do handler extract.

Os testes asseguram que:
- o dataset lido é publicado e materializado sob `target`
- o schema declarado em `columns` é aplicado na leitura
- falhas de leitura ou de formato não deixam registro parcial no registry
"""

from pathlib import Path

import pandas as pd
import pytest

try:
    from atlas_etl.steps.extract.read import ExtractHandler
    from atlas_etl.core.exceptions import (
        SchemaMismatchError,
        UnknownColumnError,
        UnsupportedFormatError,
    )
except Exception as e:  # noqa: BLE001
    ExtractHandler = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None

from tests._helpers import make_step


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing extract handler. Implement:\n"
            "- src/atlas_etl/steps/extract/read.py (ExtractHandler)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_extract_csv_publishes_materialized_dataset(ctx, orders_csv):
    _require_imports()

    step = make_step("extract_orders", "extract", source="orders.csv", target="orders", format="csv")
    out = ExtractHandler().run(step, ctx)

    dataset = ctx.registry.resolve("orders")
    assert dataset.producing_step == "extract_orders"
    assert dataset.column_names == ["id", "amount", "status"]
    assert dataset.data.shape == (4, 3)
    assert out.metrics == {"rows": 4, "columns": 3}
    assert out.payload["schema"][0] == ["id", "int"]
    assert ctx.events[-1]["message"] == "dataset extracted"


def test_extract_tsv_and_custom_delimiter(ctx, tmp_path: Path, orders_df):
    _require_imports()

    orders_df.to_csv(tmp_path / "orders.tsv", sep="\t", index=False)
    orders_df.to_csv(tmp_path / "orders_semi.csv", sep=";", index=False)

    ExtractHandler().run(make_step("t", "extract", source="orders.tsv", target="a", format="tsv"), ctx)
    ExtractHandler().run(
        make_step("s", "extract", source="orders_semi.csv", target="b", format="csv", delimiter=";"), ctx
    )

    assert ctx.registry.resolve("a").column_names == ["id", "amount", "status"]
    assert ctx.registry.resolve("b").column_names == ["id", "amount", "status"]


def test_extract_jsonl(ctx, tmp_path: Path):
    _require_imports()

    (tmp_path / "events.jsonl").write_text('{"id": 1, "kind": "a"}\n{"id": 2, "kind": "b"}\n', encoding="utf-8")

    ExtractHandler().run(make_step("e", "extract", source="events.jsonl", target="events", format="jsonl"), ctx)

    assert list(ctx.registry.resolve("events").data["kind"]) == ["a", "b"]


def test_declared_columns_are_applied(ctx, orders_csv):
    _require_imports()

    step = make_step(
        "e", "extract", source="orders.csv", target="orders", format="csv", columns={"id": "string"}
    )
    ExtractHandler().run(step, ctx)

    dtypes = {c.name: c.dtype for c in ctx.registry.resolve("orders").schema}
    assert dtypes["id"] == "string"
    assert dtypes["amount"] == "float"


def test_declared_unknown_column_leaves_registry_untouched(ctx, orders_csv):
    _require_imports()

    step = make_step("e", "extract", source="orders.csv", target="orders", format="csv", columns={"date": "datetime"})

    with pytest.raises(UnknownColumnError):
        ExtractHandler().run(step, ctx)

    assert "orders" not in ctx.registry


def test_columns_must_be_a_mapping(ctx, orders_csv):
    _require_imports()

    step = make_step("e", "extract", source="orders.csv", target="orders", format="csv", columns=["id"])

    with pytest.raises(SchemaMismatchError):
        ExtractHandler().run(step, ctx)


def test_unsupported_format_fails_before_io(ctx):
    _require_imports()

    step = make_step("e", "extract", source="missing.xlsx", target="orders", format="xlsx")

    with pytest.raises(UnsupportedFormatError):
        ExtractHandler().run(step, ctx)

    assert ctx.registry.names() == []


def test_missing_source_propagates_and_registers_nothing(ctx):
    _require_imports()

    step = make_step("e", "extract", source="nope.csv", target="orders", format="csv")

    with pytest.raises(FileNotFoundError):
        ExtractHandler().run(step, ctx)

    assert "orders" not in ctx.registry


def test_absolute_source_ignores_base_dir(ctx, tmp_path: Path, orders_df: pd.DataFrame):
    _require_imports()

    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    orders_df.to_csv(elsewhere / "o.csv", index=False)

    step = make_step("e", "extract", source=str(elsewhere / "o.csv"), target="orders", format="csv")
    out = ExtractHandler().run(step, ctx)

    assert out.payload["source"]["path"] == str(elsewhere / "o.csv")
