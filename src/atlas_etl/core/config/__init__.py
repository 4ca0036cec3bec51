"""
Configuração do Atlas ETL.

Este pacote concentra tudo o que acontece ANTES da execução de qualquer Step:
    - loader    → documento YAML/JSON → PipelineConfig (defaults aplicados)
    - settings  → políticas efetivas da run (defaults + documento + overrides)
    - merge     → deep merge determinístico com conflito de tipos explícito
    - hashing   → hash canônico da configuração efetiva
    - errors    → hierarquia ConfigError

Qualquer falha aqui é fatal e ocorre antes do primeiro Step.
"""
