from __future__ import annotations

from typing import override

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest
from import_export.admin import ExportMixin, ImportExportModelAdmin

from portal import registrations_services
from portal.faculty_csv_import import FacultyMemberResource
from portal.models import (
    ActivityLogEntry,
    Announcement,
    Candidate,
    Document,
    Election,
    ElectionBallot,
    FacultyMember,
    FinancialRecord,
    Poll,
    PollOption,
    PollResponse,
    Position,
    Registration,
    Vote,
)
from portal.registrations_services import RegistrationError


class ReadOnlyAdmin(admin.ModelAdmin):
    """Records that only the portal's services may write."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(FacultyMember)
class FacultyMemberAdmin(ImportExportModelAdmin):
    resource_classes = [FacultyMemberResource]
    list_display = ("name", "email", "department", "position", "is_active", "user")
    list_filter = ("is_active", "department")
    search_fields = ("name", "email", "department")
    ordering = ("name",)
    raw_id_fields = ("user",)


class PositionInline(admin.TabularInline):
    model = Position
    extra = 0
    fields = ("title", "public_id", "number_of_winners", "sort_order")
    readonly_fields = ("public_id",)


@admin.register(Election)
class ElectionAdmin(admin.ModelAdmin):
    list_display = ("title", "start_datetime", "end_datetime", "derived_status", "created_by")
    search_fields = ("title", "description")
    ordering = ("-created_at",)
    readonly_fields = ("created_by", "created_at", "updated_at", "derived_status")
    inlines = (PositionInline,)

    @admin.display(description="Status")
    def derived_status(self, obj: Election) -> str:
        return Election.Status(obj.status).label

    @override
    def has_change_permission(self, request, obj=None):
        # Changing the window or positions after ballots exist would alter results.
        if obj is not None and obj.ballots.exists():
            return False
        return super().has_change_permission(request, obj=obj)


@admin.register(Candidate)
class CandidateAdmin(ReadOnlyAdmin):
    list_display = ("faculty", "position", "election")
    list_filter = ("election",)


@admin.register(ElectionBallot)
class ElectionBallotAdmin(ReadOnlyAdmin):
    list_display = ("election", "voter", "submitted_at")
    list_filter = ("election",)


@admin.register(Vote)
class VoteAdmin(ReadOnlyAdmin):
    list_display = ("election", "position", "candidate", "created_at")
    list_filter = ("election",)


class PollOptionInline(admin.TabularInline):
    model = PollOption
    extra = 0


@admin.register(Poll)
class PollAdmin(admin.ModelAdmin):
    list_display = ("title", "status", "allow_multiple", "created_by", "created_at")
    list_filter = ("status", "allow_multiple")
    search_fields = ("title",)
    inlines = (PollOptionInline,)


@admin.register(PollResponse)
class PollResponseAdmin(ReadOnlyAdmin):
    list_display = ("poll", "respondent", "created_at")
    list_filter = ("poll",)


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    list_display = ("title", "category", "is_pinned", "author_name", "created_at")
    list_filter = ("category", "is_pinned")
    search_fields = ("title", "content")


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ("full_name", "email", "department", "status", "created_at", "decided_by")
    list_filter = ("status",)
    search_fields = ("full_name", "email")
    readonly_fields = ("status", "decided_at", "decided_by", "account_email", "faculty", "created_at")
    actions = ("approve_selected", "reject_selected")

    def _apply(self, request: HttpRequest, queryset: QuerySet[Registration], *, action, verb: str) -> None:
        done = 0
        for registration in queryset:
            try:
                action(registration=registration, actor=request.user)
            except RegistrationError as exc:
                self.message_user(request, f"{registration.full_name}: {exc}", level=messages.ERROR)
                continue
            done += 1
        if done:
            self.message_user(request, f"{verb} {done} registration(s).", level=messages.SUCCESS)

    @admin.action(description="Approve selected registrations", permissions=["change"])
    def approve_selected(self, request: HttpRequest, queryset: QuerySet[Registration]) -> None:
        self._apply(request, queryset, action=registrations_services.approve_registration, verb="Approved")

    @admin.action(description="Reject selected registrations", permissions=["change"])
    def reject_selected(self, request: HttpRequest, queryset: QuerySet[Registration]) -> None:
        self._apply(request, queryset, action=registrations_services.reject_registration, verb="Rejected")


@admin.register(FinancialRecord)
class FinancialRecordAdmin(ExportMixin, admin.ModelAdmin):
    list_display = ("transaction_date", "type", "description", "category", "amount", "recorded_by_name")
    list_filter = ("type", "category")
    search_fields = ("description", "reference_number")
    date_hierarchy = "transaction_date"
    readonly_fields = ("recorded_by", "recorded_by_name", "created_at", "updated_at")


@admin.register(Document)
class DocumentAdmin(ReadOnlyAdmin):
    list_display = ("name", "kind", "owner", "parent", "shared", "size", "updated_at")
    list_filter = ("kind", "shared")
    search_fields = ("name", "owner__username")
    raw_id_fields = ("owner", "parent")


@admin.register(ActivityLogEntry)
class ActivityLogEntryAdmin(ReadOnlyAdmin):
    list_display = ("created_at", "action", "category", "actor_name", "description")
    list_filter = ("category",)
    search_fields = ("description", "actor_username", "actor_name")
    ordering = ("-created_at",)
