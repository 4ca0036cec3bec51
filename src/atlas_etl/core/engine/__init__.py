"""
Engine do Atlas ETL.

Este pacote contém a implementação responsável por **planejar** e
**executar** uma run de pipeline.

Componentes principais:
    - dispatcher  → tabela estática (type, subtype) → handler; fronteira de erros
    - planner     → produtores, referências pendentes e waves de concorrência
    - resilience  → timeout e retry de chamadas a colaboradores externos
    - runner      → máquina de estados por Step e políticas de falha

Invariantes:
    - Steps só são executados após suas dependências
    - Cada Step é executado no máximo uma vez por run
    - O resultado da execução reflete explicitamente o estado de cada Step
"""
