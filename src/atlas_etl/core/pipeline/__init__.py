"""
Modelo de pipeline do Atlas ETL.

Componentes:
    - types     → StepDefinition, PipelineConfig, Dataset, StepResult, PipelineResult
    - schema    → inferência e coerção de schema sobre pandas.DataFrame
    - registry  → DatasetRegistry (write-once por run)
    - context   → RunContext entregue aos handlers
    - step      → protocolo StepHandler
"""
