from django.urls import path

from portal import (
    views_announcements,
    views_documents,
    views_elections,
    views_faculty,
    views_finance,
    views_logs,
    views_polls,
    views_registrations,
)

urlpatterns = [
    path("elections/", views_elections.elections_collection, name="api-elections"),
    path("elections/<int:election_id>/", views_elections.election_detail, name="api-election-detail"),
    path("elections/<int:election_id>/vote/", views_elections.election_vote, name="api-election-vote"),
    path("elections/<int:election_id>/end/", views_elections.election_end, name="api-election-end"),
    path("elections/<int:election_id>/delete/", views_elections.election_delete, name="api-election-delete"),

    path("faculty/", views_faculty.faculty_collection, name="api-faculty"),
    path("faculty/<int:faculty_id>/", views_faculty.faculty_update, name="api-faculty-update"),
    path(
        "faculty/<int:faculty_id>/toggle-active/",
        views_faculty.faculty_toggle_active,
        name="api-faculty-toggle-active",
    ),

    path("polls/", views_polls.polls_collection, name="api-polls"),
    path("polls/<int:poll_id>/", views_polls.poll_detail, name="api-poll-detail"),
    path("polls/<int:poll_id>/respond/", views_polls.poll_respond, name="api-poll-respond"),
    path("polls/<int:poll_id>/end/", views_polls.poll_end, name="api-poll-end"),
    path("polls/<int:poll_id>/reactivate/", views_polls.poll_reactivate, name="api-poll-reactivate"),
    path("polls/<int:poll_id>/delete/", views_polls.poll_delete, name="api-poll-delete"),

    path("announcements/", views_announcements.announcements_collection, name="api-announcements"),
    path(
        "announcements/<int:announcement_id>/",
        views_announcements.announcement_update,
        name="api-announcement-update",
    ),
    path(
        "announcements/<int:announcement_id>/pin/",
        views_announcements.announcement_toggle_pin,
        name="api-announcement-pin",
    ),
    path(
        "announcements/<int:announcement_id>/delete/",
        views_announcements.announcement_delete,
        name="api-announcement-delete",
    ),

    path("registrations/submit/", views_registrations.registration_submit, name="api-registration-submit"),
    path("registrations/", views_registrations.registrations_list, name="api-registrations"),
    path(
        "registrations/<int:registration_id>/approve/",
        views_registrations.registration_approve,
        name="api-registration-approve",
    ),
    path(
        "registrations/<int:registration_id>/reject/",
        views_registrations.registration_reject,
        name="api-registration-reject",
    ),
    path(
        "registrations/<int:registration_id>/complete/",
        views_registrations.registration_complete,
        name="api-registration-complete",
    ),
    path("account/setup/", views_registrations.account_setup, name="api-account-setup"),

    path("finance/", views_finance.financial_records_collection, name="api-finance"),
    path("finance/report/", views_finance.financial_report, name="api-finance-report"),
    path("finance/<int:record_id>/", views_finance.financial_record_update, name="api-finance-update"),
    path("finance/<int:record_id>/delete/", views_finance.financial_record_delete, name="api-finance-delete"),

    path("documents/", views_documents.documents_collection, name="api-documents"),
    path("documents/upload/", views_documents.document_upload, name="api-document-upload"),
    path("documents/<int:document_id>/rename/", views_documents.document_rename, name="api-document-rename"),
    path("documents/<int:document_id>/move/", views_documents.document_move, name="api-document-move"),
    path("documents/<int:document_id>/delete/", views_documents.document_delete, name="api-document-delete"),
    path("documents/<int:document_id>/share/", views_documents.document_share, name="api-document-share"),
    path(
        "documents/<int:document_id>/share-link/",
        views_documents.document_share_link,
        name="api-document-share-link",
    ),
    path(
        "documents/<int:document_id>/download/",
        views_documents.document_download,
        name="api-document-download",
    ),
    path("shared/<str:token>/", views_documents.shared_document, name="api-shared-document"),
    path(
        "shared/<str:token>/download/",
        views_documents.shared_document_download,
        name="api-shared-document-download",
    ),

    path("logs/", views_logs.activity_logs, name="api-logs"),
]
