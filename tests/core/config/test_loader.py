# tests/core/config/test_loader.py
"""
Testes do ConfigLoader (documento de pipeline → PipelineConfig).

Este módulo valida o comportamento do loader responsável por:
- ler documentos YAML/JSON
- validar o shape do documento e os campos obrigatórios por tipo de Step
- aplicar defaults declarados (format, join_type, mode, ordered)
- verificar write-once de datasets e a ordem de referências

Os testes asseguram que:
- a ordem declarada é preservada integralmente
- defaults são aplicados no loader, nunca deixados para os handlers
- qualquer violação estrutural levanta ConfigError, nunca resultado parcial
- referências pendentes e subtypes desconhecidos NÃO são erros de configuração

Invariantes:
    - O carregamento é puro: a mesma entrada sempre produz a mesma saída
    - Nenhuma configuração parcial é retornada em caso de erro

Este módulo existe para garantir segurança,
previsibilidade e confiabilidade no carregamento do pipeline.
"""

import json
from pathlib import Path

import pytest
import yaml

try:
    from atlas_etl.core.config.loader import load, load_document, load_pipeline
    from atlas_etl.core.config.errors import (
        ConfigError,
        ConfigNotFoundError,
        ConfigParseError,
        DuplicateDatasetDeclarationError,
        DuplicateStepNameError,
        InvalidConfigRootTypeError,
        InvalidDependencyError,
        InvalidStepDefinitionError,
        UnsupportedConfigFormatError,
    )
    from atlas_etl.core.pipeline.types import StepType
except Exception as e:  # noqa: BLE001
    load = load_document = load_pipeline = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """
    Garante que o loader e suas exceções tipadas estejam disponíveis.

    Falha imediatamente, com mensagem explícita, em vez de produzir erros
    indiretos nos testes abaixo.
    """
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing loader/errors modules. Implement:\n"
            "- src/atlas_etl/core/config/loader.py (load, load_document, load_pipeline)\n"
            "- src/atlas_etl/core/config/errors.py (typed exceptions)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _extract(name="e", target="t", **extra):
    return {"step_name": name, "type": "extract", "params": {"source": f"{target}.csv", "target": target, **extra}}


# ---------------------------------------------------------------------------
# Shape e ordem
# ---------------------------------------------------------------------------

def test_load_preserves_order_and_applies_defaults(pipeline_document):
    """
    Verifica que os Steps saem na ordem do documento, com defaults aplicados.

    Invariantes:
        - declared_order reflete a posição no documento
        - format=csv (extract) e format/mode (load) são preenchidos quando ausentes
        - validate recebe ordered=False
    """
    _require_imports()

    cfg = load(pipeline_document)

    assert cfg.pipeline_name == "orders_daily"
    assert [s.name for s in cfg.steps] == ["extract_orders", "paid_orders", "check_paid", "load_paid"]
    assert [s.declared_order for s in cfg.steps] == [0, 1, 2, 3]
    assert cfg.steps[0].type == StepType.EXTRACT
    assert cfg.steps[0].params["format"] == "csv"
    assert cfg.steps[2].params["ordered"] is False
    assert cfg.steps[3].params["format"] == "csv"
    assert cfg.steps[3].params["mode"] == "overwrite"


def test_load_is_pure(pipeline_document):
    _require_imports()

    assert load(pipeline_document) == load(pipeline_document)


def test_list_document_is_accepted_and_named_by_argument():
    _require_imports()

    cfg = load([_extract()], pipeline_name="from_file")

    assert cfg.pipeline_name == "from_file"
    assert cfg.inputs == ()
    assert len(cfg.steps) == 1


def test_default_formats_for_join_and_load():
    _require_imports()

    cfg = load(
        [
            _extract("a", "A"),
            _extract("b", "B"),
            {
                "step_name": "j",
                "type": "transform",
                "subtype": "join",
                "params": {"left": "A", "right": "B", "join_col": "id", "target": "AB"},
            },
            {"step_name": "l", "type": "load", "params": {"source": "AB", "target": "out.parquet"}},
        ]
    )

    assert cfg.step("j").params["join_type"] == "inner"
    assert cfg.step("l").params["format"] == "parquet"
    assert cfg.step("l").params["mode"] == "overwrite"


def test_inline_params_are_merged():
    _require_imports()

    cfg = load([{"step_name": "e", "type": "extract", "source": "x.csv", "target": "x", "delimiter": ";"}])

    assert dict(cfg.steps[0].params) == {"source": "x.csv", "target": "x", "delimiter": ";", "format": "csv"}


def test_params_are_read_only(pipeline_document):
    _require_imports()

    step = load(pipeline_document).steps[0]

    with pytest.raises(TypeError):
        step.params["source"] = "other.csv"  # type: ignore[index]


def test_consumes_and_produces_are_derived_from_params(pipeline_document):
    _require_imports()

    cfg = load(pipeline_document)

    assert cfg.step("extract_orders").consumes() == ()
    assert cfg.step("extract_orders").produces() == "orders"
    assert cfg.step("paid_orders").consumes() == ("orders",)
    assert cfg.step("paid_orders").produces() == "orders_paid"
    assert cfg.step("check_paid").produces() is None
    assert cfg.step("load_paid").produces() is None


# ---------------------------------------------------------------------------
# Erros estruturais
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("document", ["just text", 42, None, {"pipeline_name": "p"}])
def test_invalid_root_raises(document):
    _require_imports()

    with pytest.raises(InvalidConfigRootTypeError):
        load(document)


def test_unknown_root_key_raises():
    _require_imports()

    with pytest.raises(InvalidConfigRootTypeError):
        load({"steps": [_extract()], "stages": []})


@pytest.mark.parametrize(
    "step, missing",
    [
        ({"step_name": "e", "type": "extract", "params": {"target": "t"}}, "source"),
        ({"step_name": "j", "type": "transform", "subtype": "join", "params": {"left": "a", "right": "b", "target": "t"}}, "join_col"),
        ({"step_name": "f", "type": "transform", "subtype": "filter", "params": {"source": "a", "target": "t"}}, "condition"),
        ({"step_name": "v", "type": "validate", "params": {"source": "a"}}, "expected_columns"),
        ({"step_name": "l", "type": "load", "params": {"source": "a"}}, "target"),
    ],
)
def test_missing_required_field_raises(step, missing):
    """
    Cada tipo de Step exige seus campos obrigatórios.

    Invariantes:
        - A exceção é InvalidStepDefinitionError (um ConfigError)
        - A mensagem nomeia o campo ausente
    """
    _require_imports()

    with pytest.raises(InvalidStepDefinitionError) as exc:
        load([step])

    assert isinstance(exc.value, ConfigError)
    assert missing in str(exc.value)


def test_unknown_type_raises():
    _require_imports()

    with pytest.raises(InvalidStepDefinitionError):
        load([{"step_name": "x", "type": "pivot", "params": {}}])


def test_unknown_transform_subtype_is_not_a_config_error():
    """O par (transform, pivot) é resolvido no dispatch, não no loader."""
    _require_imports()

    cfg = load([{"step_name": "p", "type": "transform", "subtype": "pivot", "params": {"source": "a"}}])

    assert cfg.steps[0].subtype == "pivot"


def test_step_without_name_raises():
    _require_imports()

    with pytest.raises(InvalidStepDefinitionError):
        load([{"type": "extract", "params": {"source": "a.csv", "target": "a"}}])


def test_duplicate_step_name_raises():
    _require_imports()

    with pytest.raises(DuplicateStepNameError):
        load([_extract("e", "a"), _extract("e", "b")])


def test_two_producers_of_same_dataset_raise():
    _require_imports()

    with pytest.raises(DuplicateDatasetDeclarationError):
        load([_extract("e1", "orders"), _extract("e2", "orders")])


def test_producing_a_declared_input_raises():
    _require_imports()

    with pytest.raises(DuplicateDatasetDeclarationError):
        load({"inputs": ["orders"], "steps": [_extract("e", "orders")]})


def test_forward_reference_raises():
    _require_imports()

    document = [
        {"step_name": "l", "type": "load", "params": {"source": "orders", "target": "o.csv"}},
        _extract("e", "orders"),
    ]

    with pytest.raises(InvalidDependencyError):
        load(document)


def test_depends_on_must_name_an_earlier_step():
    _require_imports()

    document = [
        {**_extract("a", "A"), "depends_on": ["b"]},
        _extract("b", "B"),
    ]

    with pytest.raises(InvalidDependencyError):
        load(document)


def test_dangling_reference_is_resolved_at_runtime_not_here():
    _require_imports()

    cfg = load([_extract("e", "T1"), {"step_name": "l", "type": "load", "params": {"source": "T2", "target": "o.csv"}}])

    assert cfg.step("l").consumes() == ("T2",)


@pytest.mark.parametrize(
    "step",
    [
        {"step_name": "j", "type": "transform", "subtype": "join", "params": {"left": "a", "right": "b", "join_col": "id", "target": "t", "join_type": "cross"}},
        {"step_name": "f", "type": "transform", "subtype": "filter", "params": {"source": "a", "condition": 42, "target": "t"}},
        {"step_name": "f", "type": "transform", "subtype": "filter", "params": {"source": "a", "condition": "  ", "target": "t"}},
        {"step_name": "l", "type": "load", "params": {"source": "a", "target": "o.csv", "mode": "upsert"}},
        {"step_name": "v", "type": "validate", "params": {"source": "a", "expected_columns": "id,amount"}},
        {"step_name": "v", "type": "validate", "params": {"source": "a", "expected_columns": ["id"], "ordered": "yes"}},
        {"step_name": "e", "type": "extract", "params": {"source": "a.csv", "target": "a", "timeout_seconds": 0}},
        {"step_name": "e", "type": "extract", "params": {"source": "a.csv", "target": "a"}, "enabled": "no"},
    ],
)
def test_out_of_range_params_raise(step):
    _require_imports()

    with pytest.raises(InvalidStepDefinitionError):
        load([step])


# ---------------------------------------------------------------------------
# Arquivos
# ---------------------------------------------------------------------------

def test_load_pipeline_from_yaml_uses_file_stem_as_default_name(tmp_path: Path):
    _require_imports()

    path = tmp_path / "nightly.yaml"
    path.write_text(yaml.safe_dump([_extract()]), encoding="utf-8")

    cfg = load_pipeline(path)

    assert cfg.pipeline_name == "nightly"


def test_load_pipeline_from_json(tmp_path: Path, pipeline_document):
    _require_imports()

    path = tmp_path / "pipeline.json"
    path.write_text(json.dumps(pipeline_document), encoding="utf-8")

    assert load_pipeline(path) == load(pipeline_document)


def test_missing_file_raises(tmp_path: Path):
    _require_imports()

    with pytest.raises(ConfigNotFoundError):
        load_document(tmp_path / "missing.yaml")


def test_unsupported_extension_raises(tmp_path: Path):
    _require_imports()

    path = tmp_path / "pipeline.toml"
    path.write_text("steps = []", encoding="utf-8")

    with pytest.raises(UnsupportedConfigFormatError):
        load_document(path)


def test_malformed_yaml_raises_parse_error(tmp_path: Path):
    _require_imports()

    path = tmp_path / "broken.yaml"
    path.write_text("steps: [unclosed\n  - a: b", encoding="utf-8")

    with pytest.raises(ConfigParseError):
        load_document(path)
