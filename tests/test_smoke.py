# tests/test_smoke.py
"""
Testes de sanidade estrutural (smoke tests) do Atlas ETL.

Este módulo garante apenas que:
- o pacote `atlas_etl` pode ser importado sem falhas estruturais
- a tabela canônica de dispatch pode ser montada
- o ambiente de testes (pytest) está funcional

Limites explícitos:
    - Não testar lógica de negócio
    - Não testar fluxo de execução
    - Não acumular asserts funcionais
"""


def test_smoke():
    """Sentinela de integridade: importa o pacote e monta o dispatcher."""
    import atlas_etl
    from atlas_etl.core.engine.dispatcher import StepDispatcher

    assert atlas_etl.__version__
    assert len(StepDispatcher().supported()) == 5
