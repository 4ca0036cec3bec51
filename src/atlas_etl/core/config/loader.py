# src/atlas_etl/core/config/loader.py
"""
Loader canônico do documento de pipeline do Atlas ETL.

Este módulo é responsável por carregar o documento declarativo (YAML ou
JSON) e transformá-lo em um `PipelineConfig`: uma sequência ordenada e
imutável de `StepDefinition` com defaults aplicados.

Formatos de documento aceitos:
    - lista ordenada de Steps
    - mapa com `steps` (lista) e, opcionalmente, `pipeline_name`,
      `inputs` (nomes de datasets pré-existentes) e `settings` (políticas)

Cada Step é um mapa `{step_name, type, subtype?, params?, depends_on?, enabled?}`.
Parâmetros podem ser declarados em `params` ou inline no próprio Step.

Responsabilidades do módulo:
    - Ler arquivos YAML/JSON (PyYAML / json)
    - Validar o shape do documento e os campos obrigatórios por tipo
    - Aplicar defaults declarados (format, join_type, mode, ordered)
    - Verificar write-once de datasets e ordem de referências

Princípios fundamentais:
    - O carregamento é puro: a mesma entrada sempre produz a mesma saída
    - A ordem declarada é preservada integralmente
    - Erros estruturais são fatais e nunca produzem resultado parcial

Limites explícitos:
    - Não valida formatos de I/O (falha de Step, não de configuração)
    - Não rejeita `subtype` desconhecido (falha de dispatch, não de configuração)
    - Não rejeita referência a dataset nunca produzido (resolvida em runtime)
    - Não executa Steps

Este módulo existe para garantir resolução previsível,
determinística e segura do documento de pipeline.
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union
import json

import yaml  # PyYAML

from atlas_etl.core.pipeline.types import PipelineConfig, StepDefinition, StepType

from .errors import (
    ConfigNotFoundError,
    ConfigParseError,
    DuplicateDatasetDeclarationError,
    DuplicateStepNameError,
    InvalidConfigRootTypeError,
    InvalidDependencyError,
    InvalidStepDefinitionError,
    UnsupportedConfigFormatError,
)


StepKey = Tuple[StepType, Optional[str]]

# Campos obrigatórios por (type, subtype)
REQUIRED_PARAMS: Dict[StepKey, Tuple[str, ...]] = {
    (StepType.EXTRACT, None): ("source", "target"),
    (StepType.TRANSFORM, "join"): ("left", "right", "join_col", "target"),
    (StepType.TRANSFORM, "filter"): ("source", "condition", "target"),
    (StepType.VALIDATE, None): ("source", "expected_columns"),
    (StepType.LOAD, None): ("source", "target"),
}

# Defaults aplicados aqui, nunca deixados para os handlers
DEFAULT_PARAMS: Dict[StepKey, Dict[str, Any]] = {
    (StepType.EXTRACT, None): {"format": "csv"},
    (StepType.TRANSFORM, "join"): {"join_type": "inner"},
    (StepType.VALIDATE, None): {"ordered": False},
    (StepType.LOAD, None): {"format": "parquet", "mode": "overwrite"},
}

JOIN_TYPES = ("inner", "left", "right", "full")
LOAD_MODES = ("overwrite", "append")

_RESERVED_KEYS = {"step_name", "name", "type", "subtype", "params", "depends_on", "enabled"}


def _load_file(path: Path) -> Any:
    """
    Carrega um arquivo de documento de pipeline.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)

    Raises:
        ConfigNotFoundError: Se o arquivo não existir.
        UnsupportedConfigFormatError: Se o formato do arquivo não for suportado.
        ConfigParseError: Se o conteúdo não for YAML/JSON válido.
    """
    if not path.exists():
        raise ConfigNotFoundError(f"Arquivo de configuração não encontrado: {path}")

    suffix = path.suffix.lower()

    try:
        if suffix in {".yaml", ".yml"}:
            with path.open("r", encoding="utf-8") as f:
                return yaml.safe_load(f)

        if suffix == ".json":
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigParseError(f"Documento inválido em {path}: {e}") from e

    raise UnsupportedConfigFormatError(f"Formato não suportado: {path.suffix}")


def load_document(path: Union[str, Path]) -> Any:
    """Lê o documento bruto (lista ou mapa) de um arquivo YAML/JSON."""
    return _load_file(Path(path))


def _is_non_empty_str(x: Any) -> bool:
    return isinstance(x, str) and bool(x.strip())


def _split_document(document: Any) -> Tuple[List[Any], Optional[str], List[str], Dict[str, Any]]:
    if isinstance(document, list):
        return document, None, [], {}

    if not isinstance(document, dict):
        raise InvalidConfigRootTypeError(
            f"Documento deve ser uma lista de Steps ou um mapa com 'steps', "
            f"recebido: {type(document).__name__}"
        )

    steps = document.get("steps")
    if not isinstance(steps, list):
        raise InvalidConfigRootTypeError("Documento deve conter 'steps' como lista ordenada")

    unknown = sorted(set(document) - {"pipeline_name", "steps", "inputs", "settings"})
    if unknown:
        raise InvalidConfigRootTypeError(f"Chaves desconhecidas no documento: {unknown}")

    name = document.get("pipeline_name")
    if name is not None and not _is_non_empty_str(name):
        raise InvalidConfigRootTypeError("pipeline_name deve ser string não vazia")

    inputs = document.get("inputs") or []
    if not isinstance(inputs, list) or not all(_is_non_empty_str(i) for i in inputs):
        raise InvalidConfigRootTypeError("inputs deve ser uma lista de nomes de datasets")

    settings = document.get("settings") or {}
    if not isinstance(settings, dict):
        raise InvalidConfigRootTypeError("settings deve ser um mapa")

    return steps, name, list(inputs), settings


def _parse_step(raw: Any, index: int) -> StepDefinition:
    if not isinstance(raw, dict):
        raise InvalidStepDefinitionError(
            f"Step #{index} deve ser um mapa, recebido: {type(raw).__name__}"
        )

    name = raw.get("step_name", raw.get("name"))
    if not _is_non_empty_str(name):
        raise InvalidStepDefinitionError(f"Step #{index} sem 'step_name'")

    raw_type = raw.get("type")
    try:
        step_type = StepType(raw_type)
    except ValueError:
        raise InvalidStepDefinitionError(
            f"Step '{name}': type inválido {raw_type!r}; "
            f"esperado um de {[t.value for t in StepType]}"
        ) from None

    subtype = raw.get("subtype")
    if subtype is not None and not _is_non_empty_str(subtype):
        raise InvalidStepDefinitionError(f"Step '{name}': subtype deve ser string")

    declared_params = raw.get("params") or {}
    if not isinstance(declared_params, dict):
        raise InvalidStepDefinitionError(f"Step '{name}': params deve ser um mapa")

    params: Dict[str, Any] = dict(declared_params)
    for key, value in raw.items():
        if key not in _RESERVED_KEYS and key not in params:
            params[key] = value

    key = (step_type, subtype)
    for required in REQUIRED_PARAMS.get(key, ()):
        value = params.get(required)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise InvalidStepDefinitionError(
                f"Step '{name}' ({step_type.value}"
                f"{'/' + subtype if subtype else ''}) sem campo obrigatório '{required}'"
            )

    for default_key, default_value in DEFAULT_PARAMS.get(key, {}).items():
        params.setdefault(default_key, default_value)

    _check_params(name, key, params)

    depends_on = raw.get("depends_on") or []
    if isinstance(depends_on, str):
        depends_on = [depends_on]
    if not isinstance(depends_on, list) or not all(_is_non_empty_str(d) for d in depends_on):
        raise InvalidStepDefinitionError(f"Step '{name}': depends_on deve ser lista de nomes")

    enabled = raw.get("enabled", True)
    if not isinstance(enabled, bool):
        raise InvalidStepDefinitionError(f"Step '{name}': enabled deve ser bool")

    return StepDefinition(
        name=name,
        type=step_type,
        subtype=subtype,
        params=params,
        declared_order=index,
        depends_on=tuple(depends_on),
        enabled=enabled,
    )


def _check_params(name: str, key: StepKey, params: Mapping[str, Any]) -> None:
    if key == (StepType.TRANSFORM, "join"):
        if params["join_type"] not in JOIN_TYPES:
            raise InvalidStepDefinitionError(
                f"Step '{name}': join_type deve ser um de {JOIN_TYPES}"
            )
        if not _is_non_empty_str(params["join_col"]):
            raise InvalidStepDefinitionError(f"Step '{name}': join_col deve ser string")

    if key == (StepType.TRANSFORM, "filter") and not _is_non_empty_str(params["condition"]):
        raise InvalidStepDefinitionError(f"Step '{name}': condition deve ser string não vazia")

    if key == (StepType.VALIDATE, None):
        expected = params["expected_columns"]
        if not isinstance(expected, list) or not all(_is_non_empty_str(c) for c in expected):
            raise InvalidStepDefinitionError(
                f"Step '{name}': expected_columns deve ser lista de nomes de coluna"
            )
        if not isinstance(params["ordered"], bool):
            raise InvalidStepDefinitionError(f"Step '{name}': ordered deve ser bool")

    if key == (StepType.LOAD, None) and params["mode"] not in LOAD_MODES:
        raise InvalidStepDefinitionError(f"Step '{name}': mode deve ser um de {LOAD_MODES}")

    timeout = params.get("timeout_seconds")
    if timeout is not None and (
        isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0
    ):
        raise InvalidStepDefinitionError(f"Step '{name}': timeout_seconds deve ser número positivo")

    for ref in ("source", "left", "right", "target"):
        if ref in params and not _is_non_empty_str(params[ref]):
            raise InvalidStepDefinitionError(f"Step '{name}': {ref} deve ser string não vazia")


def _check_references(steps: List[StepDefinition], inputs: List[str]) -> None:
    """Write-once de datasets, referências para trás e depends_on válidos."""
    producers: Dict[str, StepDefinition] = {}
    input_set: Set[str] = set(inputs)

    for step in steps:
        target = step.produces()
        if target is None:
            continue
        if target in input_set:
            raise DuplicateDatasetDeclarationError(
                f"Step '{step.name}' produz '{target}', declarado como input da run"
            )
        if target in producers:
            raise DuplicateDatasetDeclarationError(
                f"Dataset '{target}' produzido por '{producers[target].name}' e '{step.name}'"
            )
        producers[target] = step

    seen_steps: Set[str] = set()
    for step in steps:
        for dataset in step.consumes():
            producer = producers.get(dataset)
            if producer is not None and producer.declared_order >= step.declared_order:
                raise InvalidDependencyError(
                    f"Step '{step.name}' referencia '{dataset}', produzido apenas depois "
                    f"por '{producer.name}'"
                )
        for dep in step.depends_on:
            if dep not in seen_steps:
                raise InvalidDependencyError(
                    f"Step '{step.name}' depends on unknown or later step '{dep}'"
                )
        seen_steps.add(step.name)


def load(document: Any, *, pipeline_name: Optional[str] = None) -> PipelineConfig:
    """
    Transforma um documento já parseado em `PipelineConfig`.

    Args:
        document: lista de Steps ou mapa com `steps`.
        pipeline_name: nome usado quando o documento não declara `pipeline_name`.

    Returns:
        PipelineConfig: pipeline imutável, na ordem do documento, com defaults.

    Raises:
        ConfigError: qualquer violação estrutural (nunca resultado parcial).
    """
    raw_steps, declared_name, inputs, settings = _split_document(document)

    steps: List[StepDefinition] = []
    names: Set[str] = set()
    for index, raw in enumerate(raw_steps):
        step = _parse_step(raw, index)
        if step.name in names:
            raise DuplicateStepNameError(f"Duplicate step name: {step.name}")
        names.add(step.name)
        steps.append(step)

    if len(set(inputs)) != len(inputs):
        raise InvalidConfigRootTypeError("inputs contém nomes duplicados")

    _check_references(steps, inputs)

    return PipelineConfig(
        pipeline_name=declared_name or pipeline_name or "pipeline",
        steps=tuple(steps),
        inputs=tuple(inputs),
        settings=settings,
    )


def load_pipeline(path: Union[str, Path]) -> PipelineConfig:
    """Carrega e valida o documento de pipeline de um arquivo YAML/JSON."""
    p = Path(path)
    return load(load_document(p), pipeline_name=p.stem)
