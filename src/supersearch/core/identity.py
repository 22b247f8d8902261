"""Pipeline identity: a content hash of the model and splitter configuration."""

import hashlib
import json
from typing import Any, Dict

from .errors import ConfigurationError
from .models import Pipeline, PipelineConfig

# Hex characters kept from the digest; PostgreSQL identifiers cap at 63.
IDENTITY_LENGTH = 32


def resolve(config: PipelineConfig) -> str:
    """Return the stable pipeline name for ``config``.

    The digest covers model name, model parameters, splitter name and splitter
    parameters concatenated in that order, so any change to them yields a new
    pipeline.
    """
    material = (
        config.model_name
        + config.model_parameters
        + config.splitter_name
        + config.splitter_parameters
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:IDENTITY_LENGTH]


def _parse_parameters(field: str, raw: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{field} is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ConfigurationError(f"{field} must be a JSON object, got {type(parsed).__name__}")
    return parsed


def build_pipeline(config: PipelineConfig) -> Pipeline:
    """Resolve ``config`` into a Pipeline, rejecting malformed parameter text."""
    return Pipeline(
        name=resolve(config),
        model_name=config.model_name,
        model_parameters=_parse_parameters("model_parameters", config.model_parameters),
        splitter_name=config.splitter_name,
        splitter_parameters=_parse_parameters("splitter_parameters", config.splitter_parameters),
    )
