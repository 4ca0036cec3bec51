"""
Núcleo do Atlas ETL.

Subpacotes:
    - config        → carregamento do documento de pipeline e das políticas da run
    - pipeline      → tipos canônicos, registry de datasets e contexto de execução
    - engine        → dispatcher, planner, resiliência e runner
    - traceability  → log sink, lineage e manifest da run

Módulos:
    - errors      → catálogo estável de tipos de erro e ErrorPayload
    - exceptions  → exceções tipadas levantadas por handlers e registry
"""
