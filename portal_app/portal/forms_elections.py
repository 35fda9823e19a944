from __future__ import annotations

import datetime

from django import forms
from django.conf import settings
from django.utils import timezone

from portal.elections_services import ElectionDefinition, PositionDefinition

_DATETIME_LOCAL_INPUT_FORMATS: list[str] = [
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    *list(settings.DATETIME_INPUT_FORMATS),
]


def _int_value(value: object, *, error: str) -> int:
    if isinstance(value, bool):
        raise forms.ValidationError(error)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 10)
        except ValueError as exc:
            raise forms.ValidationError(error) from exc
    raise forms.ValidationError(error)


class ElectionForm(forms.Form):
    """Parses an election definition from a JSON body or form post.

    Required-field and business checks happen in
    `elections_services.validate_election_definition` so every entry point
    reports the same messages in the same order; this form only converts types.
    """

    title = forms.CharField(required=False, max_length=255)
    description = forms.CharField(required=False)
    start_datetime = forms.DateTimeField(required=False, input_formats=_DATETIME_LOCAL_INPUT_FORMATS)
    end_datetime = forms.DateTimeField(required=False, input_formats=_DATETIME_LOCAL_INPUT_FORMATS)
    positions = forms.JSONField(required=False)

    def clean_positions(self) -> list[PositionDefinition]:
        raw = self.cleaned_data.get("positions")
        if raw in (None, ""):
            return []
        if not isinstance(raw, list):
            raise forms.ValidationError("Positions must be a list.")

        parsed: list[PositionDefinition] = []
        for item in raw:
            if not isinstance(item, dict):
                raise forms.ValidationError("Each position must be an object.")

            candidate_ids_raw = item.get("candidate_ids") or []
            if not isinstance(candidate_ids_raw, list):
                raise forms.ValidationError("candidate_ids must be a list.")

            parsed.append(
                PositionDefinition(
                    title=str(item.get("title") or "").strip(),
                    number_of_winners=_int_value(
                        item.get("number_of_winners", 1),
                        error="Number of winners must be a whole number.",
                    ),
                    candidate_ids=tuple(
                        _int_value(cid, error="Candidate ids must be whole numbers.") for cid in candidate_ids_raw
                    ),
                )
            )
        return parsed

    def clean(self) -> dict[str, object]:
        cleaned = super().clean()

        for key in ("start_datetime", "end_datetime"):
            value = cleaned.get(key)
            if isinstance(value, datetime.datetime) and timezone.is_naive(value):
                cleaned[key] = timezone.make_aware(value)

        return cleaned

    def to_definition(self) -> ElectionDefinition:
        data = self.cleaned_data
        return ElectionDefinition(
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            start_datetime=data.get("start_datetime"),
            end_datetime=data.get("end_datetime"),
            positions=tuple(data.get("positions") or ()),
        )
