# src/atlas_etl/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Atlas ETL.

Este módulo define a hierarquia oficial de exceções utilizadas durante
o carregamento do documento de pipeline, a validação estrutural dos Steps
e a resolução das políticas de execução.

As exceções aqui definidas representam **violações estruturais
explícitas**, detectadas antes de qualquer Step executar.

Princípios fundamentais:
    - Exceções são tipadas e semânticas
    - Erros estruturais são tratados como falhas fatais (CLI: exit code 2)
    - Nenhum resultado parcial é produzido em caso de erro

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa erro de execução de Step

Limites explícitos:
    - Não executa pipeline
    - Não realiza fallback ou recovery
"""

from __future__ import annotations


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Atlas ETL.

    Todas as exceções levantadas durante carregamento, validação estrutural
    e resolução de configuração devem herdar desta classe.

    Esta hierarquia permite:
        - captura genérica de erros de configuração
        - distinção clara entre falhas estruturais e falhas de execução

    Limites explícitos:
        - Não representa erro de execução do pipeline
        - Nunca é convertida em StepResult
    """

    kind = "ConfigError"


class ConfigNotFoundError(ConfigError):
    """Arquivo de configuração não encontrado no caminho especificado."""


class UnsupportedConfigFormatError(ConfigError):
    """
    Exceção levantada quando o formato do arquivo de configuração
    não é suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)

    Limites explícitos:
        - Não tenta inferir formato por conteúdo
    """


class ConfigParseError(ConfigError):
    """O arquivo existe mas não é YAML/JSON sintaticamente válido."""


class InvalidConfigRootTypeError(ConfigError):
    """
    Exceção levantada quando o conteúdo raiz do documento não é
    uma lista ordenada de Steps nem um mapa contendo `steps`.

    Limites explícitos:
        - Não tenta normalizar ou encapsular estruturas inválidas
    """


class InvalidStepDefinitionError(ConfigError):
    """
    Exceção levantada quando um Step declarado é estruturalmente inválido.

    Exemplos:
        - Step não é um mapa
        - `type` ausente ou fora de {extract, transform, validate, load}
        - campo obrigatório ausente para o tipo declarado
        - parâmetro enumerado fora do domínio (join_type, mode)
    """


class DuplicateStepNameError(ConfigError):
    """Dois Steps declaram o mesmo nome no documento."""


class DuplicateDatasetDeclarationError(ConfigError):
    """
    Dois Steps declaram o mesmo dataset de saída, ou um Step declara
    como saída um nome reservado como input da run.

    Decisões arquiteturais:
        - O invariante write-once é verificado estaticamente no load
        - O registry ainda o reforça em runtime (`DuplicateDatasetError`)
    """


class InvalidDependencyError(ConfigError):
    """
    Um Step referencia dataset ou Step que só aparece depois dele
    na sequência declarada, ou declara `depends_on` inexistente.
    """


class ConfigTypeConflictError(ConfigError):
    """
    Exceção levantada quando ocorre conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"retry": {"max_retries": 2}}
        - override: {"retry": "always"}

    Invariantes:
        - Nenhum merge parcial é produzido em caso de conflito
    """


class InvalidSettingsError(ConfigError):
    """Valor de política fora do domínio permitido (ex.: on_step_failure)."""
