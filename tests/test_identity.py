"""Tests for pipeline identity and pipeline construction."""

import pytest

from supersearch.core.errors import ConfigurationError
from supersearch.core.identity import IDENTITY_LENGTH, build_pipeline, resolve
from supersearch.core.models import PipelineConfig


def config(**overrides):
    values = {
        "model_name": "intfloat/e5-small",
        "model_parameters": '{"prompt": "passage: "}',
        "splitter_name": "recursive_character",
        "splitter_parameters": '{"chunk_size": 1500}',
    }
    values.update(overrides)
    return PipelineConfig(**values)


def test_identity_is_deterministic():
    first = resolve(config())
    assert resolve(config()) == first
    assert resolve(PipelineConfig(**config().model_dump())) == first
    assert len(first) == IDENTITY_LENGTH


@pytest.mark.parametrize("field,value", [
    ("model_name", "intfloat/e5-large"),
    ("model_parameters", '{"prompt": "query: "}'),
    ("splitter_name", "markdown"),
    ("splitter_parameters", '{"chunk_size": 1501}'),
])
def test_changing_any_field_changes_identity(field, value):
    assert resolve(config(**{field: value})) != resolve(config())


def test_identity_is_hex():
    int(resolve(config()), 16)


def test_build_pipeline_parses_parameters():
    pipeline = build_pipeline(config())

    assert pipeline.name == resolve(config())
    assert pipeline.model_parameters == {"prompt": "passage: "}
    assert pipeline.splitter_parameters == {"chunk_size": 1500}


def test_empty_parameters_mean_no_parameters():
    pipeline = build_pipeline(config(model_parameters="", splitter_parameters="{}"))

    assert pipeline.model_parameters == {}
    assert pipeline.splitter_parameters == {}


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"text"'])
def test_malformed_parameters_block_pipeline(raw):
    with pytest.raises(ConfigurationError):
        build_pipeline(config(splitter_parameters=raw))
