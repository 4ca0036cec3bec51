"""
Contrato canônico de handler de Step do Atlas ETL.

Um handler implementa a semântica de um par `(type, subtype)`
(extract, transform/join, transform/filter, validate ou load) sobre
datasets nomeados no registry da run.

Responsabilidades de um handler:
    - ler seus parâmetros exclusivamente de `StepDefinition.params`
    - resolver e publicar datasets exclusivamente via RunContext
    - chamar colaboradores externos via `RunContext.call_external`
    - retornar um `StepOutput` em caso de sucesso

Princípios fundamentais:
    - Handlers não conhecem o runner nem o dispatcher
    - Handlers não controlam ordem de execução nem políticas
    - Falhas são sinalizadas por exceções tipadas (`core.exceptions`);
      a conversão em StepResult FAILED ocorre na fronteira do dispatcher
    - Conformidade é garantida por duck typing (@runtime_checkable)

Limites explícitos:
    - Não contém lógica de retry ou timeout
    - Não registra transições de estado
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .context import RunContext
from .types import StepDefinition, StepOutput


@runtime_checkable
class StepHandler(Protocol):
    """
    Contrato canônico de um handler do Atlas ETL.

    Atributos obrigatórios:
        - name: identificador estável do handler (ex.: "transform.join")

    Invariantes:
        - `run` é executado no máximo uma vez por Step por run
        - O retorno de `run` é sempre um `StepOutput`
    """
    name: str

    def run(self, step: StepDefinition, ctx: RunContext) -> StepOutput:
        """Executa o Step declarado usando exclusivamente o RunContext."""
        ...
