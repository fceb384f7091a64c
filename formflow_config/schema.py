"""
Runtime settings schema.

``FormflowSettings`` is the only configuration object the rest of the code
base ever sees.  The loader builds it from YAML; it is frozen so a running
service cannot drift from what was loaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field

PUBLISH_DEMOTION_SCOPES = ("all_others", "previous_published")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ---------------------------------------------------------------------------
# Reference catalogs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldTypeDef:
    """A field type seeded into the catalog."""

    name: str
    kind: str


@dataclass(frozen=True)
class CatalogEntryDef:
    """An input rule or action seeded into the catalog."""

    name: str
    code: str
    description: str | None = None
    is_public: bool = True


@dataclass(frozen=True)
class CatalogDefinition:
    field_types: tuple[FieldTypeDef, ...] = ()
    input_rules: tuple[CatalogEntryDef, ...] = ()
    actions: tuple[CatalogEntryDef, ...] = ()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo_sql: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class FormflowSettings:
    """Everything a deployment can tune."""

    config_id: str
    database: DatabaseSettings
    log_level: str = "INFO"
    publish_demotion_scope: str = "all_others"
    # Entropy, in bytes, of generated entry public identifiers.
    public_identifier_bytes: int = 24
    default_language_id: str | None = None
    catalog: CatalogDefinition = field(default_factory=CatalogDefinition)
    checksum: str = ""

    @property
    def database_url(self) -> str:
        return self.database.url
