from __future__ import annotations

import datetime
import secrets

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from portal.elections_tally import election_status


class FacultyMember(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="faculty_profile",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    department = models.CharField(max_length=255, blank=True, default="Not Assigned")
    position = models.CharField(max_length=255, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name", "id")
        indexes = [
            models.Index(fields=["is_active"], name="fm_active"),
        ]

    def __str__(self) -> str:
        return f"{self.name}"


class Election(models.Model):
    class Status(models.TextChoices):
        upcoming = "upcoming", "Upcoming"
        active = "active", "Active"
        ended = "ended", "Ended"

    title = models.CharField(max_length=255)
    description = models.TextField()
    start_datetime = models.DateTimeField()
    end_datetime = models.DateTimeField()
    created_by = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-id")
        constraints = [
            models.CheckConstraint(
                condition=Q(end_datetime__gt=models.F("start_datetime")),
                name="chk_election_end_after_start",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.title}"

    def status_at(self, now: datetime.datetime) -> str:
        return election_status(start=self.start_datetime, end=self.end_datetime, now=now)

    @property
    def status(self) -> str:
        # Never stored: the time window is the only source of truth.
        return self.status_at(timezone.now())


def generate_position_public_id() -> str:
    return f"pos_{secrets.token_hex(6)}"


class Position(models.Model):
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="positions")
    public_id = models.CharField(max_length=32, default=generate_position_public_id)
    title = models.CharField(max_length=255)
    number_of_winners = models.PositiveIntegerField(default=1)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("sort_order", "id")
        constraints = [
            models.UniqueConstraint(fields=["election", "public_id"], name="uniq_position_election_public_id"),
            models.CheckConstraint(condition=Q(number_of_winners__gte=1), name="chk_position_winners_positive"),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.election_id})"

    def candidate_ids(self) -> list[int]:
        return [c.faculty_id for c in self.candidates.all()]


class Candidate(models.Model):
    # `election` is denormalized from `position` so the database can enforce
    # "one position per candidate per election".
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="candidates")
    position = models.ForeignKey(Position, on_delete=models.CASCADE, related_name="candidates")
    faculty = models.ForeignKey(FacultyMember, on_delete=models.PROTECT, related_name="candidacies")

    class Meta:
        ordering = ("position_id", "id")
        constraints = [
            models.UniqueConstraint(fields=["election", "faculty"], name="uniq_candidate_election_faculty"),
        ]

    def __str__(self) -> str:
        return f"{self.faculty_id} → {self.position_id}"


class ElectionBallot(models.Model):
    """One voter's submission for one election.

    The unique constraint is the authoritative "has already voted" check.
    """

    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="ballots")
    voter = models.ForeignKey(FacultyMember, on_delete=models.PROTECT, related_name="election_ballots")
    submitted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("submitted_at", "id")
        constraints = [
            models.UniqueConstraint(fields=["election", "voter"], name="uniq_electionballot_election_voter"),
        ]

    def __str__(self) -> str:
        return f"ballot {self.election_id}/{self.voter_id}"


class Vote(models.Model):
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="votes")
    ballot = models.ForeignKey(ElectionBallot, on_delete=models.CASCADE, related_name="votes")
    voter = models.ForeignKey(FacultyMember, on_delete=models.PROTECT, related_name="votes_cast")
    position = models.ForeignKey(Position, on_delete=models.CASCADE, related_name="votes")
    candidate = models.ForeignKey(FacultyMember, on_delete=models.PROTECT, related_name="votes_received")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "-id")
        constraints = [
            models.UniqueConstraint(
                fields=["election", "voter", "position"],
                name="uniq_vote_election_voter_position",
            ),
        ]
        indexes = [
            models.Index(fields=["election", "created_at"], name="vote_election_at"),
        ]

    def __str__(self) -> str:
        return f"vote {self.position_id}: {self.candidate_id}"


class Poll(models.Model):
    class Status(models.TextChoices):
        active = "active", "Active"
        ended = "ended", "Ended"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.active, db_index=True)
    allow_multiple = models.BooleanField(default=False)
    created_by = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    ended_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ("-created_at", "-id")

    def __str__(self) -> str:
        return f"{self.title}"


class PollOption(models.Model):
    poll = models.ForeignKey(Poll, on_delete=models.CASCADE, related_name="options")
    label = models.CharField(max_length=255)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("sort_order", "id")

    def __str__(self) -> str:
        return f"{self.label}"


class PollResponse(models.Model):
    poll = models.ForeignKey(Poll, on_delete=models.CASCADE, related_name="responses")
    respondent = models.ForeignKey(FacultyMember, on_delete=models.CASCADE, related_name="poll_responses")
    selected_options = models.ManyToManyField(PollOption, related_name="responses")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("created_at", "id")
        constraints = [
            models.UniqueConstraint(fields=["poll", "respondent"], name="uniq_pollresponse_poll_respondent"),
        ]

    def __str__(self) -> str:
        return f"response {self.poll_id}/{self.respondent_id}"


class Announcement(models.Model):
    class Category(models.TextChoices):
        general = "general", "General"
        urgent = "urgent", "Urgent"
        event = "event", "Event"
        memo = "memo", "Memo"

    title = models.CharField(max_length=255)
    content = models.TextField()
    category = models.CharField(max_length=16, choices=Category.choices, default=Category.general)
    is_pinned = models.BooleanField(default=False)
    author_username = models.CharField(max_length=255, blank=True, default="")
    author_name = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-is_pinned", "-created_at", "-id")

    def __str__(self) -> str:
        return f"{self.title}"


def registration_receipt_upload_to(instance: Registration, filename: str) -> str:
    # Never trust the client filename beyond its extension.
    _, dot, ext = filename.rpartition(".")
    suffix = f".{ext.lower()}" if dot and ext.isalnum() else ""
    return f"registrations/receipts/{timezone.now():%Y%m%d}_{secrets.token_hex(8)}{suffix}"


class Registration(models.Model):
    class Status(models.TextChoices):
        pending = "pending", "Pending"
        approved = "approved", "Approved"
        rejected = "rejected", "Rejected"
        completed = "completed", "Completed"

    full_name = models.CharField(max_length=255)
    email = models.EmailField()
    phone = models.CharField(max_length=64, blank=True, default="")
    department = models.CharField(max_length=255)
    address = models.TextField(blank=True, default="")
    purpose = models.TextField(blank=True, default="")
    receipt = models.FileField(upload_to=registration_receipt_upload_to)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.pending, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    decided_at = models.DateTimeField(blank=True, null=True)
    decided_by = models.CharField(max_length=255, blank=True, default="")
    account_email = models.EmailField(blank=True, default="")
    faculty = models.OneToOneField(
        FacultyMember,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="registration",
    )

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=["status", "created_at"], name="reg_status_at"),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.status})"


class FinancialRecord(models.Model):
    class Type(models.TextChoices):
        income = "income", "Income"
        expense = "expense", "Expense"

    type = models.CharField(max_length=16, choices=Type.choices)
    description = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    category = models.CharField(max_length=64)
    transaction_date = models.DateField()
    reference_number = models.CharField(max_length=64, blank=True, default="")
    recorded_by = models.CharField(max_length=255, blank=True, default="")
    recorded_by_name = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-transaction_date", "-id")
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="chk_financialrecord_amount_positive"),
        ]
        indexes = [
            models.Index(fields=["transaction_date"], name="fin_txn_date"),
        ]

    def __str__(self) -> str:
        return f"{self.type}: {self.description} ({self.amount})"


def document_upload_to(instance: Document, filename: str) -> str:
    _, dot, ext = filename.rpartition(".")
    suffix = f".{ext.lower()}" if dot and ext.isalnum() else ""
    return f"documents/{timezone.now():%Y%m%d}_{secrets.token_hex(8)}{suffix}"


class Document(models.Model):
    """A file or folder in a member's document storage."""

    class Kind(models.TextChoices):
        folder = "folder", "Folder"
        pdf = "pdf", "PDF"
        doc = "doc", "Document"
        image = "image", "Image"
        spreadsheet = "spreadsheet", "Spreadsheet"
        other = "other", "Other"

    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="documents")
    parent = models.ForeignKey(
        "self",
        on_delete=models.CASCADE,
        blank=True,
        null=True,
        related_name="children",
    )
    name = models.CharField(max_length=255)
    kind = models.CharField(max_length=16, choices=Kind.choices)
    file = models.FileField(upload_to=document_upload_to, blank=True)
    size = models.PositiveBigIntegerField(blank=True, null=True)
    mime_type = models.CharField(max_length=255, blank=True, default="")
    created_by_name = models.CharField(max_length=255, blank=True, default="")
    shared = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name", "id")
        indexes = [
            models.Index(fields=["owner", "parent"], name="doc_owner_parent"),
        ]

    def __str__(self) -> str:
        return f"{self.name}"

    @property
    def is_folder(self) -> bool:
        return self.kind == self.Kind.folder


class ActivityLogEntry(models.Model):
    class Category(models.TextChoices):
        faculty = "faculty", "Faculty"
        election = "election", "Election"
        poll = "poll", "Poll"
        announcement = "announcement", "Announcement"
        registration = "registration", "Registration"
        finance = "finance", "Finance"
        document = "document", "Document"

    action = models.CharField(max_length=64)
    category = models.CharField(max_length=32, choices=Category.choices, db_index=True)
    description = models.TextField()
    actor_username = models.CharField(max_length=255, blank=True, default="")
    actor_name = models.CharField(max_length=255, blank=True, default="")
    metadata = models.JSONField(blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ("-created_at", "-id")
        verbose_name = "activity log entry"
        verbose_name_plural = "activity log"

    def __str__(self) -> str:
        return f"{self.action}: {self.description}"
