"""
Registro de datasets de uma run (DatasetRegistry).

Este módulo define o `DatasetRegistry`, responsável por rastrear os
datasets nomeados de uma única execução de pipeline: schema, estado de
materialização e Step produtor.

O registry atua como a garantia central de segurança da run:
    - cada nome de dataset é escrito no máximo uma vez (write-once)
    - apenas o Step produtor pode materializar o seu dataset
    - um dataset só é resolvível após materializado

Esse invariante single-writer-per-name é o que permite a execução
concorrente de Steps independentes sem lock sobre identidades de
datasets: nunca há corrida write/write ou write/read sobre um mesmo nome.

Responsabilidades do módulo:
    - Registrar datasets produzidos por Steps e inputs pré-existentes
    - Controlar a transição unmaterialized → materialized
    - Resolver datasets materializados para consumidores
    - Preservar a ordem de registro

Invariantes:
    - Um nome registrado nunca é re-registrado na mesma run
    - `resolve` nunca retorna dataset não materializado
    - O registry é escopado a uma run; não é um store persistente

Limites explícitos:
    - Não executa Steps
    - Não realiza I/O
    - Não emite lineage (responsabilidade do RunContext)

Este módulo existe para garantir integridade,
previsibilidade e segurança no compartilhamento de dados entre Steps.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from atlas_etl.core.exceptions import (
    DatasetOwnershipError,
    DuplicateDatasetError,
    UnknownDatasetError,
)

from .schema import infer_schema
from .types import Dataset, DatasetState, Schema


@dataclass
class DatasetRegistry:
    """
    Registro canônico de datasets de uma run.

    Decisões arquiteturais:
        - Instâncias de `Dataset` são imutáveis; transições de estado
          substituem a entrada via `dataclasses.replace`
        - A ordem de registro é mantida separadamente da estrutura de armazenamento
        - Erros de identidade são tipados (Duplicate/Unknown/Ownership)
    """

    _datasets: Dict[str, Dataset] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    def register(
        self,
        name: str,
        schema: Schema,
        producing_step: Optional[str],
        data: Any = None,
    ) -> Dataset:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("dataset name must be a non-empty string")

        existing = self._datasets.get(name)
        if existing is not None:
            raise DuplicateDatasetError(
                name,
                existing_producer=existing.producing_step,
                producer=producing_step,
            )

        dataset = Dataset(
            name=name,
            schema=tuple(schema),
            state=DatasetState.UNMATERIALIZED,
            producing_step=producing_step,
            data=data,
        )
        self._datasets[name] = dataset
        self._order.append(name)
        return dataset

    def register_input(self, name: str, data: Any, schema: Optional[Schema] = None) -> Dataset:
        """Registra um input pré-existente da run, já materializado."""
        if schema is None:
            schema = infer_schema(data)
        self.register(name, schema, None, data)
        dataset = replace(self._datasets[name], state=DatasetState.MATERIALIZED)
        self._datasets[name] = dataset
        return dataset

    def mark_materialized(self, name: str, step_name: str) -> Dataset:
        dataset = self._datasets.get(name)
        if dataset is None:
            raise UnknownDatasetError(name)
        if dataset.producing_step != step_name:
            raise DatasetOwnershipError(name, producer=dataset.producing_step, caller=step_name)

        materialized = replace(dataset, state=DatasetState.MATERIALIZED)
        self._datasets[name] = materialized
        return materialized

    def discard(self, name: str, step_name: str) -> None:
        """Desfaz o registro ainda não materializado de um dataset (rollback do produtor)."""
        dataset = self._datasets.get(name)
        if dataset is None:
            return
        if dataset.producing_step != step_name:
            raise DatasetOwnershipError(name, producer=dataset.producing_step, caller=step_name)
        if dataset.is_materialized:
            raise ValueError(f"Cannot discard materialized dataset: {name}")
        del self._datasets[name]
        self._order.remove(name)

    def resolve(self, name: str) -> Dataset:
        dataset = self._datasets.get(name)
        if dataset is None:
            raise UnknownDatasetError(name, reason="not registered")
        if not dataset.is_materialized:
            raise UnknownDatasetError(name, reason="not materialized")
        return dataset

    def is_materialized(self, name: str) -> bool:
        dataset = self._datasets.get(name)
        return dataset is not None and dataset.is_materialized

    def producer_of(self, name: str) -> Optional[str]:
        dataset = self._datasets.get(name)
        if dataset is None:
            raise UnknownDatasetError(name)
        return dataset.producing_step

    def __contains__(self, name: object) -> bool:
        return name in self._datasets

    def names(self) -> List[str]:
        return list(self._order)

    def list(self) -> List[Dataset]:
        return [self._datasets[n] for n in self._order]
