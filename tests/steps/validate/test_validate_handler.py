# tests/steps/validate/test_validate_handler.py
"""
Testes do handler validate.

Os testes asseguram que:
- o diff `{missing, extra}` é calculado por nome de coluna
- `ordered=true` também exige a ordem declarada
- contrato violado falha com ValidationMismatchError (a política é do runner)
"""

import pandas as pd
import pytest

try:
    from atlas_etl.steps.validate.columns import ValidateHandler, column_diff
    from atlas_etl.core.exceptions import UnknownDatasetError, ValidationMismatchError
except Exception as e:  # noqa: BLE001
    ValidateHandler = column_diff = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None

from tests._helpers import make_step, publish


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing validate handler. Implement:\n"
            "- src/atlas_etl/steps/validate/columns.py (ValidateHandler, column_diff)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _validate(expected, ordered=False):
    return make_step("check", "validate", source="orders", expected_columns=expected, ordered=ordered)


def test_column_diff():
    _require_imports()

    assert column_diff(["id", "amount"], ["id", "amount", "date"]) == {
        "missing": {"date"},
        "extra": set(),
        "order_mismatch": False,
    }
    assert column_diff(["b", "a"], ["a", "b"], ordered=True)["order_mismatch"] is True
    assert column_diff(["b", "a"], ["a", "b"])["order_mismatch"] is False


def test_missing_date_is_reported(ctx):
    """expected [id, amount, date] contra schema [id, amount] → missing={date}, extra={}."""
    _require_imports()
    publish(ctx, "orders", pd.DataFrame({"id": [1], "amount": [10.0]}))

    with pytest.raises(ValidationMismatchError) as exc:
        ValidateHandler().run(_validate(["id", "amount", "date"]), ctx)

    assert exc.value.missing == {"date"}
    assert exc.value.extra == set()
    assert exc.value.details["dataset"] == "orders"
    assert exc.value.to_payload().kind == "ValidationMismatchError"
    assert ctx.events[-1]["level"] == "warning"


def test_extra_columns_fail(ctx, orders_df):
    _require_imports()
    publish(ctx, "orders", orders_df)

    with pytest.raises(ValidationMismatchError) as exc:
        ValidateHandler().run(_validate(["id", "amount"]), ctx)

    assert exc.value.extra == {"status"}


def test_matching_columns_in_any_order_pass(ctx, orders_df):
    _require_imports()
    publish(ctx, "orders", orders_df)

    out = ValidateHandler().run(_validate(["status", "id", "amount"]), ctx)

    assert out.payload["missing"] == [] and out.payload["extra"] == []
    assert out.metrics == {"columns": 3}


def test_ordered_validation_detects_order(ctx, orders_df):
    _require_imports()
    publish(ctx, "orders", orders_df)

    with pytest.raises(ValidationMismatchError) as exc:
        ValidateHandler().run(_validate(["status", "id", "amount"], ordered=True), ctx)

    assert exc.value.order_mismatch is True
    assert "order" in exc.value.message


def test_validate_does_not_produce_datasets(ctx, orders_df):
    _require_imports()
    publish(ctx, "orders", orders_df)

    ValidateHandler().run(_validate(["id", "amount", "status"]), ctx)

    assert ctx.registry.names() == ["orders"]


def test_unknown_source_fails(ctx):
    _require_imports()

    with pytest.raises(UnknownDatasetError):
        ValidateHandler().run(_validate(["id"]), ctx)
