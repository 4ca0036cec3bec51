# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas ETL.

Este módulo define fixtures reutilizáveis que fornecem:
- DataFrames pequenos e determinísticos (orders, payments)
- RunContext isolado, com registry vazio e relógio fixo
- arquivo `orders.csv` materializado sob `tmp_path`
- documento de pipeline mínimo e válido (paths relativos ao diretório do documento)

Decisões arquiteturais:
    - Dados retornados são determinísticos e isolados por teste
    - Arquivos são sempre criados sob `tmp_path`
    - Helpers de StepDefinition e datasets vivem em `tests/_helpers.py`
      (importáveis; fixtures não são importadas diretamente)

Invariantes:
    - Nenhuma fixture executa pipeline real
    - Nenhuma fixture depende de variáveis de ambiente

Este módulo existe como infraestrutura de teste e não
como validação funcional do Atlas ETL.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

import pandas as pd
import pytest

from atlas_etl.core.pipeline.context import RunContext


FIXED_TS = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def orders_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "id": [1, 2, 3, 4],
            "amount": [10.0, 25.5, 7.25, 40.0],
            "status": ["paid", "pending", "paid", "refunded"],
        }
    )


@pytest.fixture
def payments_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "id": [3, 1, 5],
            "method": ["card", "pix", "cash"],
            "status": ["ok", "ok", "failed"],
        }
    )


@pytest.fixture
def ctx(tmp_path: Path) -> RunContext:
    """RunContext determinístico, com base_dir em tmp_path e sem guard."""
    return RunContext(run_id="test-run", created_at=FIXED_TS, base_dir=tmp_path)


@pytest.fixture
def orders_csv(tmp_path: Path, orders_df: pd.DataFrame) -> Path:
    path = tmp_path / "orders.csv"
    orders_df.to_csv(path, index=False)
    return path


@pytest.fixture
def pipeline_document() -> Dict[str, Any]:
    """Documento mínimo: extract → filter → validate → load (paths relativos)."""
    return {
        "pipeline_name": "orders_daily",
        "steps": [
            {
                "step_name": "extract_orders",
                "type": "extract",
                "params": {"source": "orders.csv", "target": "orders"},
            },
            {
                "step_name": "paid_orders",
                "type": "transform",
                "subtype": "filter",
                "params": {"source": "orders", "condition": "status = 'paid'", "target": "orders_paid"},
            },
            {
                "step_name": "check_paid",
                "type": "validate",
                "params": {"source": "orders_paid", "expected_columns": ["id", "amount", "status"]},
            },
            {
                "step_name": "load_paid",
                "type": "load",
                "params": {"source": "orders_paid", "target": "out/orders_paid.csv", "format": "csv"},
            },
        ],
    }
