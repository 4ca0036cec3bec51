# tests/core/pipeline/test_registry.py
"""
Testes do DatasetRegistry.

Os testes asseguram que:
- cada nome de dataset é registrado no máximo uma vez por run (write-once)
- apenas o Step produtor materializa o seu dataset
- `resolve` nunca retorna dataset não materializado
- inputs pré-existentes nascem materializados e sem Step produtor
- a ordem de registro é preservada
"""

import pandas as pd
import pytest

from atlas_etl.core.exceptions import DatasetOwnershipError, DuplicateDatasetError, UnknownDatasetError
from atlas_etl.core.pipeline.registry import DatasetRegistry
from atlas_etl.core.pipeline.types import Column, DatasetState


SCHEMA = (Column("id", "int"), Column("amount", "float"))


def test_register_then_materialize_then_resolve():
    reg = DatasetRegistry()

    ds = reg.register("orders", SCHEMA, "extract_orders")
    assert ds.state == DatasetState.UNMATERIALIZED
    assert not reg.is_materialized("orders")

    reg.mark_materialized("orders", "extract_orders")

    resolved = reg.resolve("orders")
    assert resolved.is_materialized
    assert resolved.producing_step == "extract_orders"
    assert resolved.column_names == ["id", "amount"]


def test_duplicate_registration_raises():
    reg = DatasetRegistry()
    reg.register("orders", SCHEMA, "a")

    with pytest.raises(DuplicateDatasetError) as exc:
        reg.register("orders", SCHEMA, "b")

    assert exc.value.details["existing_producer"] == "a"
    assert exc.value.details["producer"] == "b"


def test_resolve_unknown_dataset_raises():
    with pytest.raises(UnknownDatasetError) as exc:
        DatasetRegistry().resolve("ghost")

    assert exc.value.details["reason"] == "not registered"


def test_resolve_unmaterialized_dataset_raises():
    reg = DatasetRegistry()
    reg.register("orders", SCHEMA, "a")

    with pytest.raises(UnknownDatasetError) as exc:
        reg.resolve("orders")

    assert exc.value.details["reason"] == "not materialized"


def test_only_producer_can_materialize():
    reg = DatasetRegistry()
    reg.register("orders", SCHEMA, "a")

    with pytest.raises(DatasetOwnershipError):
        reg.mark_materialized("orders", "intruder")

    assert not reg.is_materialized("orders")


def test_discard_rolls_back_unmaterialized_registration():
    reg = DatasetRegistry()
    reg.register("orders", SCHEMA, "a")

    reg.discard("orders", "a")

    assert "orders" not in reg
    reg.register("orders", SCHEMA, "a")


def test_discard_refuses_materialized_dataset():
    reg = DatasetRegistry()
    reg.register("orders", SCHEMA, "a")
    reg.mark_materialized("orders", "a")

    with pytest.raises(ValueError):
        reg.discard("orders", "a")


def test_register_input_is_materialized_without_producer():
    reg = DatasetRegistry()

    ds = reg.register_input("customers", pd.DataFrame({"id": [1, 2], "name": ["a", "b"]}))

    assert ds.is_materialized
    assert ds.producing_step is None
    assert reg.producer_of("customers") is None
    assert [c.dtype for c in ds.schema] == ["int", "string"]


def test_names_preserve_registration_order():
    reg = DatasetRegistry()
    for name in ("c", "a", "b"):
        reg.register(name, SCHEMA, f"p_{name}")

    assert reg.names() == ["c", "a", "b"]
    assert [d.name for d in reg.list()] == ["c", "a", "b"]
