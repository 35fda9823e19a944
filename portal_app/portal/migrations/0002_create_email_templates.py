from __future__ import annotations

from django.db import migrations

TEMPLATE_VOTE_RECEIPT = "election-vote-receipt"
TEMPLATE_ANNOUNCEMENT = "announcement-notification"
TEMPLATE_ACCOUNT_SETUP = "registration-account-setup"


def create_portal_templates(apps, schema_editor) -> None:
    EmailTemplate = apps.get_model("post_office", "EmailTemplate")

    EmailTemplate.objects.update_or_create(
        name=TEMPLATE_VOTE_RECEIPT,
        language="",
        default_template=None,
        defaults={
            "subject": "Vote receipt for {{ election_title }}",
            "content": (
                "Hello {{ voter_name }},\n"
                "\n"
                "Your ballot for {{ election_title }} was recorded on {{ submitted_at }}.\n"
                "\n"
                "Positions on your ballot: {{ position_count }}\n"
                "Voting closes: {{ election_end_datetime }}\n"
                "\n"
                "Your choices are not included in this message. Results are published\n"
                "once the election ends:\n"
                "{{ election_url }}\n"
                "\n"
                "-- The Faculty Association\n"
            ),
            "html_content": (
                "<p>Hello {{ voter_name }},</p>"
                "<p>Your ballot for <strong>{{ election_title }}</strong> was recorded on {{ submitted_at }}.</p>"
                "<ul>"
                "<li>Positions on your ballot: {{ position_count }}</li>"
                "<li>Voting closes: {{ election_end_datetime }}</li>"
                "</ul>"
                "<p>Your choices are not included in this message. Results are published once the election ends: "
                "<a href=\"{{ election_url }}\">{{ election_url }}</a></p>"
                "<p><em>The Faculty Association</em></p>"
            ),
            "description": "Election vote receipt",
        },
    )

    EmailTemplate.objects.update_or_create(
        name=TEMPLATE_ANNOUNCEMENT,
        language="",
        default_template=None,
        defaults={
            "subject": "[{{ category_label }}] {{ title }}",
            "content": (
                "Hello {{ recipient_name }},\n"
                "\n"
                "{{ author_name }} posted a new announcement:\n"
                "\n"
                "{{ title }}\n"
                "\n"
                "{{ content }}\n"
                "\n"
                "-- The Faculty Association\n"
            ),
            "html_content": (
                "<p>Hello {{ recipient_name }},</p>"
                "<p>{{ author_name }} posted a new announcement:</p>"
                "<h3>{{ title }}</h3>"
                "<p>{{ content|linebreaksbr }}</p>"
                "<p><em>The Faculty Association</em></p>"
            ),
            "description": "New announcement notification",
        },
    )

    EmailTemplate.objects.update_or_create(
        name=TEMPLATE_ACCOUNT_SETUP,
        language="",
        default_template=None,
        defaults={
            "subject": "Your faculty portal account is ready",
            "content": (
                "Hello {{ full_name }},\n"
                "\n"
                "Your membership registration has been approved and your portal account\n"
                "has been created with the username {{ username }}.\n"
                "\n"
                "Set your password here (valid for {{ valid_for_days }} days):\n"
                "{{ setup_url }}\n"
                "\n"
                "-- The Faculty Association\n"
            ),
            "html_content": (
                "<p>Hello {{ full_name }},</p>"
                "<p>Your membership registration has been approved and your portal account "
                "has been created with the username <strong>{{ username }}</strong>.</p>"
                "<p>Set your password here (valid for {{ valid_for_days }} days):<br/>"
                "<a href=\"{{ setup_url }}\">{{ setup_url }}</a></p>"
                "<p><em>The Faculty Association</em></p>"
            ),
            "description": "Registration completed: account setup link",
        },
    )


def noop_reverse(*_args, **_kwargs) -> None:
    # Keep templates on rollback to avoid losing admin edits.
    return


class Migration(migrations.Migration):
    dependencies = [
        ("portal", "0001_initial"),
        ("post_office", "0013_email_recipient_delivery_status_alter_log_status"),
    ]

    operations = [
        migrations.RunPython(create_portal_templates, reverse_code=noop_reverse),
    ]
