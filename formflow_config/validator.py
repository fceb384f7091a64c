"""
Settings validator (``formflow_config.validator``).

Checks a loaded ``FormflowSettings`` before it is handed to the runtime.
Every problem is collected; an empty list means the settings are usable.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from formflow_config.schema import LOG_LEVELS, PUBLISH_DEMOTION_SCOPES, FormflowSettings
from formflow_kernel.domain.field_values import FieldKind
from formflow_kernel.domain.input_rules import default_input_rule_registry


@dataclass
class ConfigValidationResult:
    """``is_valid`` only when ``errors`` is empty.  Warnings never block."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_settings(settings: FormflowSettings) -> ConfigValidationResult:
    result = ConfigValidationResult()

    if not settings.database.url:
        result.errors.append("database.url must not be empty")
    if settings.database.pool_size < 1:
        result.errors.append("database.pool_size must be at least 1")
    if settings.database.max_overflow < 0:
        result.errors.append("database.max_overflow must not be negative")
    if settings.log_level not in LOG_LEVELS:
        result.errors.append(f"log_level must be one of {', '.join(LOG_LEVELS)}")
    if settings.publish_demotion_scope not in PUBLISH_DEMOTION_SCOPES:
        result.errors.append(
            f"publish_demotion_scope must be one of {', '.join(PUBLISH_DEMOTION_SCOPES)}"
        )
    if settings.public_identifier_bytes < 16:
        result.errors.append("public_identifier_bytes must be at least 16")

    _validate_catalog(settings, result)
    return result


def _validate_catalog(settings: FormflowSettings, result: ConfigValidationResult) -> None:
    kinds = {k.value for k in FieldKind}
    rule_codes = default_input_rule_registry().codes()

    seen: set[str] = set()
    for ft in settings.catalog.field_types:
        if ft.name in seen:
            result.errors.append(f"Duplicate field type name: {ft.name}")
        seen.add(ft.name)
        if ft.kind not in kinds:
            result.errors.append(f"Field type {ft.name!r} has unknown kind {ft.kind!r}")

    for label, entries in (
        ("input rule", settings.catalog.input_rules),
        ("action", settings.catalog.actions),
    ):
        names: set[str] = set()
        for entry in entries:
            if entry.name in names:
                result.errors.append(f"Duplicate {label} name: {entry.name}")
            names.add(entry.name)

    for rule in settings.catalog.input_rules:
        if rule.code not in rule_codes:
            result.warnings.append(
                f"Input rule {rule.name!r} has code {rule.code!r} with no registered validator"
            )
