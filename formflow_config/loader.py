"""
Settings loader (``formflow_config.loader``).

Responsibility
--------------
Reads the YAML settings file (and the catalog file it points at) and parses
them into the frozen dataclasses of ``formflow_config.schema``.  Callers use
``formflow_config.get_active_config()``; nothing else should call this
module directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any

import yaml

from formflow_config.schema import (
    CatalogDefinition,
    CatalogEntryDef,
    DatabaseSettings,
    FieldTypeDef,
    FormflowSettings,
)

DATABASE_URL_ENV = "FORMFLOW_DATABASE_URL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_catalog_entry(data: dict[str, Any]) -> CatalogEntryDef:
    return CatalogEntryDef(
        name=data["name"],
        code=data["code"],
        description=data.get("description"),
        is_public=bool(data.get("is_public", True)),
    )


def parse_catalog(data: dict[str, Any]) -> CatalogDefinition:
    """Parse a CatalogDefinition from a dict."""
    return CatalogDefinition(
        field_types=tuple(
            FieldTypeDef(name=ft["name"], kind=ft["kind"]) for ft in data.get("field_types", [])
        ),
        input_rules=tuple(parse_catalog_entry(r) for r in data.get("input_rules", [])),
        actions=tuple(parse_catalog_entry(a) for a in data.get("actions", [])),
    )


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=data["url"],
        echo_sql=bool(data.get("echo_sql", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
    )


def load_settings(
    path: Path,
    environ: dict[str, str] | None = None,
) -> FormflowSettings:
    """
    Load settings from ``path``.

    The catalog file named by ``catalog_file`` is resolved relative to the
    settings file.  ``FORMFLOW_DATABASE_URL`` in ``environ`` (default
    ``os.environ``) replaces ``database.url``.
    """
    env = os.environ if environ is None else environ
    data = load_yaml_file(path)

    database = dict(data["database"])
    if env.get(DATABASE_URL_ENV):
        database["url"] = env[DATABASE_URL_ENV]

    catalog_data: dict[str, Any] = {}
    if data.get("catalog_file"):
        catalog_data = load_yaml_file(path.parent / data["catalog_file"])

    return FormflowSettings(
        config_id=data.get("config_id", path.stem),
        database=parse_database(database),
        log_level=str(data.get("log_level", "INFO")).upper(),
        publish_demotion_scope=data.get("publish_demotion_scope", "all_others"),
        public_identifier_bytes=int(data.get("public_identifier_bytes", 24)),
        default_language_id=data.get("default_language_id"),
        catalog=parse_catalog(catalog_data),
        checksum=compute_checksum({"settings": data, "catalog": catalog_data}),
    )
