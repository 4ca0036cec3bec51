"""
Rastreabilidade da execução.

    - log_sink  → uma linha por transição de estado de Step
    - lineage   → arestas produtor → dataset → consumidor
    - manifest  → registro persistível e auditável de uma run
"""
