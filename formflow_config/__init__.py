"""
formflow_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  Sits above ``formflow_kernel`` and below
    ``formflow_services`` and ``scripts``.  The kernel never imports from
    this package; services receive plain values (a URL, a demotion scope,
    a byte count) taken from the returned settings.

Failure modes:
    - ``FileNotFoundError`` -- settings or catalog file missing.
    - ``ValueError`` -- validation failures (all of them, one per line).
"""

from __future__ import annotations

import logging
from pathlib import Path

from formflow_config.loader import load_settings
from formflow_config.schema import (
    CatalogDefinition,
    CatalogEntryDef,
    DatabaseSettings,
    FieldTypeDef,
    FormflowSettings,
)
from formflow_config.validator import ConfigValidationResult, validate_settings

_logger = logging.getLogger("formflow.config")

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "settings" / "default.yaml"


def get_active_config(
    config_path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> FormflowSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to the settings YAML.  Defaults to
            formflow_config/settings/default.yaml.
        environ: Environment mapping for overrides.  Defaults to
            ``os.environ``.

    Returns:
        Validated, frozen FormflowSettings.

    Raises:
        FileNotFoundError: If the settings or catalog file is missing.
        ValueError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_SETTINGS_FILE
    settings = load_settings(path, environ)

    validation = validate_settings(settings)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"detail": warning})

    _logger.info(
        "FORMFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "FORMFLOW_CONFIG_TRACE",
            "config_id": settings.config_id,
            "checksum": settings.checksum,
            "publish_demotion_scope": settings.publish_demotion_scope,
            "field_type_count": len(settings.catalog.field_types),
            "input_rule_count": len(settings.catalog.input_rules),
            "action_count": len(settings.catalog.actions),
        },
    )
    return settings


__all__ = [
    "get_active_config",
    "validate_settings",
    "ConfigValidationResult",
    "CatalogDefinition",
    "CatalogEntryDef",
    "DatabaseSettings",
    "FieldTypeDef",
    "FormflowSettings",
]
