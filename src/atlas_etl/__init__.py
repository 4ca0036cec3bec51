# src/atlas_etl/__init__.py
"""
Atlas ETL: executor declarativo de pipelines ETL.

O comportamento do pipeline (extract, transform, validate, load) é descrito
inteiramente em um documento de configuração; o engine interpreta o
documento, despacha cada Step declarado para o handler correto, rastreia
datasets intermediários por nome e reporta o desfecho de cada Step.

Arquitetura em alto nível:
    - core.config       → documento YAML/JSON, políticas, merge e hashing
    - core.pipeline     → tipos canônicos, registry de datasets e contexto de execução
    - core.engine       → dispatcher, planner, resiliência e runner
    - core.traceability → log sink, lineage e Manifest
    - steps             → handlers canônicos (extract, join, filter, validate, load)
    - io                → adapters de formato (csv, tsv, parquet, jsonl)
    - cli               → `atlas-etl CONFIG [...]`

Limites explícitos:
    - Não implementa storage físico nem execução distribuída
    - Não oferece linguagem de expressões geral (apenas o predicado do filter)
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
