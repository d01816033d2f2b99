from __future__ import annotations

from functools import lru_cache
from importlib import resources
import json
from typing import Any

from jsonschema import Draft202012Validator

SNAPSHOT_SCHEMA = "snapshot.schema.json"
PARTITIONS_SCHEMA = "partitions.schema.json"


def load_schema(name: str) -> dict[str, Any]:
    schema_path = resources.files("hwmon_relay").joinpath(f"schemas/{name}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


@lru_cache(maxsize=None)
def get_validator(name: str) -> Draft202012Validator:
    return Draft202012Validator(schema=load_schema(name))


def _validate(name: str, payload: Any) -> list[str]:
    validator = get_validator(name)
    errors = sorted(validator.iter_errors(payload), key=lambda e: [str(part) for part in e.path])
    return [error.message for error in errors]


def validate_snapshot(payload: dict[str, Any]) -> list[str]:
    return _validate(SNAPSHOT_SCHEMA, payload)


def validate_partitions(payload: Any) -> list[str]:
    return _validate(PARTITIONS_SCHEMA, payload)
