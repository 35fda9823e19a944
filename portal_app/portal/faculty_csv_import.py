from __future__ import annotations

import logging
from typing import Any, override

from import_export import fields, resources, widgets
from tablib import Dataset

from portal.activity_log import log_faculty_action
from portal.faculty_services import DEFAULT_DEPARTMENT
from portal.models import FacultyMember
from portal.views_utils import _normalize_str

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("name", "email")


class FacultyMemberResource(resources.ModelResource):
    """Bulk-load the faculty directory from a spreadsheet.

    Rows are matched on email, so re-importing an updated sheet edits existing
    members instead of duplicating them. Rows without an email are dropped.
    """

    is_active = fields.Field(
        attribute="is_active",
        column_name="is_active",
        widget=widgets.BooleanWidget(),
    )

    class Meta:
        model = FacultyMember
        fields = ("name", "email", "department", "position", "is_active")
        import_id_fields = ("email",)
        skip_unchanged = True
        report_skipped = True
        use_transactions = True

    @override
    def before_import(self, dataset: Dataset, **kwargs: Any) -> None:
        headers = [str(h or "").strip().lower() for h in (dataset.headers or [])]
        missing = [column for column in REQUIRED_COLUMNS if column not in headers]
        if missing:
            raise ValueError(f"CSV is missing required columns: {', '.join(missing)}")
        dataset.headers = headers

        email_index = headers.index("email")
        for index in reversed(range(len(dataset))):
            if not _normalize_str(dataset[index][email_index]):
                del dataset[index]

    @override
    def before_import_row(self, row: Any, **kwargs: Any) -> None:
        row["email"] = _normalize_str(row.get("email")).lower()
        row["name"] = _normalize_str(row.get("name"))
        row["department"] = _normalize_str(row.get("department")) or DEFAULT_DEPARTMENT
        if "position" in row:
            row["position"] = _normalize_str(row.get("position"))
        if _normalize_str(row.get("is_active")) == "":
            row["is_active"] = "1"

    @override
    def save_instance(self, instance: FacultyMember, is_create: bool, row: Any, **kwargs: Any) -> None:
        super().save_instance(instance, is_create, row, **kwargs)
        if kwargs.get("dry_run"):
            return

        log_faculty_action(
            action="created" if is_create else "updated",
            faculty_name=instance.name,
            actor=kwargs.get("user"),
            metadata={"faculty_id": instance.id, "source": "csv"},
        )
        logger.info("Faculty imported faculty_id=%s created=%s", instance.id, is_create)
