"""
formflow_services.translation -- Localizing structure views for end users.

Translations are stored elsewhere; the kernel only asks a
TranslationProvider for an entity's translated text and overlays it on the
frozen views with ``dataclasses.replace``.  Text the provider does not
translate keeps its stored value.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from formflow_kernel.domain.collaborators import LocalizedText, TranslationProvider
from formflow_kernel.domain.dtos import (
    EntryStageView,
    EntryView,
    FieldView,
    FormSummary,
    SectionView,
    StageView,
    TransitionView,
)


class NullTranslationProvider:
    """Translates nothing."""

    def localize(self, entity_id: Any, language_id: Any) -> LocalizedText | None:
        return None


class StaticTranslationProvider:
    """Translations held in memory, keyed by ``(entity id, language id)`` text."""

    def __init__(
        self,
        translations: Mapping[tuple[Any, Any], LocalizedText | Mapping[str, str]] | None = None,
    ) -> None:
        self._translations: dict[tuple[str, str], LocalizedText] = {}
        for (entity_id, language_id), text in (translations or {}).items():
            self.add(entity_id, language_id, text)

    def add(self, entity_id: Any, language_id: Any, text: LocalizedText | Mapping[str, str]) -> None:
        if not isinstance(text, LocalizedText):
            text = LocalizedText(**text)
        self._translations[(str(entity_id), str(language_id))] = text

    def localize(self, entity_id: Any, language_id: Any) -> LocalizedText | None:
        return self._translations.get((str(entity_id), str(language_id)))


class Localizer:
    """Applies one provider and language to structure views."""

    def __init__(self, provider: TranslationProvider, language_id: Any) -> None:
        self._provider = provider
        self._language_id = language_id

    def _lookup(self, entity_id: Any) -> LocalizedText | None:
        if self._language_id is None:
            return None
        return self._provider.localize(entity_id, self._language_id)

    def form_summary(self, summary: FormSummary) -> FormSummary:
        text = self._lookup(summary.id)
        if text is None or text.label is None:
            return summary
        return replace(summary, name=text.label)

    def form_name(self, form_id: Any, name: str) -> str:
        text = self._lookup(form_id)
        return text.label if text is not None and text.label is not None else name

    def stage(self, stage: StageView) -> StageView:
        text = self._lookup(stage.id)
        return replace(
            stage,
            name=_pick(text, "label", stage.name),
            sections=tuple(self.section(s) for s in stage.sections),
        )

    def section(self, section: SectionView) -> SectionView:
        text = self._lookup(section.id)
        return replace(
            section,
            name=_pick(text, "label", section.name),
            fields=tuple(self.field(f) for f in section.fields),
        )

    def field(self, field: FieldView) -> FieldView:
        text = self._lookup(field.id)
        if text is None:
            return field
        return replace(
            field,
            label=_pick(text, "label", field.label),
            helper_text=_pick(text, "helper_text", field.helper_text),
            placeholder=_pick(text, "placeholder", field.placeholder),
            default_value=_pick(text, "default_value", field.default_value),
        )

    def transition(self, transition: TransitionView) -> TransitionView:
        text = self._lookup(transition.id)
        return replace(transition, label=_pick(text, "label", transition.label))

    def entry(self, entry: EntryView) -> EntryView:
        return replace(
            entry,
            stages=tuple(
                EntryStageView(
                    stage=self.stage(s.stage),
                    values=s.values,
                    is_editable=s.is_editable,
                    is_current=s.is_current,
                )
                for s in entry.stages
            ),
            available_transitions=tuple(self.transition(t) for t in entry.available_transitions),
        )


def _pick(text: LocalizedText | None, attr: str, default: Any) -> Any:
    if text is None:
        return default
    value = getattr(text, attr)
    return default if value is None else value
