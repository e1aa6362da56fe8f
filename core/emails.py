"""Transactional email for Nemesis.

Messages go through Django's ``send_mail`` so tests can inspect
``mail.outbox``; in deployment :class:`ResendEmailBackend` delivers them
through the Resend API.
"""
import logging

import resend
from django.conf import settings
from django.core.mail import send_mail
from django.core.mail.backends.base import BaseEmailBackend
from django.template.loader import render_to_string
from django.utils.html import strip_tags

logger = logging.getLogger(__name__)


class ResendEmailBackend(BaseEmailBackend):
    def __init__(self, api_key=None, fail_silently=False, **kwargs):
        super().__init__(fail_silently=fail_silently, **kwargs)
        self.api_key = api_key or settings.RESEND_API_KEY

    def send_messages(self, email_messages):
        if not email_messages:
            return 0
        resend.api_key = self.api_key
        sent = 0
        for message in email_messages:
            payload = {
                "from": message.from_email or settings.DEFAULT_FROM_EMAIL,
                "to": list(message.to),
                "subject": message.subject,
                "text": message.body,
            }
            for content, mimetype in getattr(message, "alternatives", []):
                if mimetype == "text/html":
                    payload["html"] = content
            try:
                response = resend.Emails.send(payload)
            except Exception:
                logger.exception("Resend rejected email to %s", payload["to"])
                if not self.fail_silently:
                    raise
                continue
            logger.info("Email sent to %s (%s)", payload["to"], response.get("id") if isinstance(response, dict) else response)
            sent += 1
        return sent


def _send(template, subject, recipient, context):
    html_body = render_to_string(f"emails/{template}.html", context)
    send_mail(
        subject=subject,
        message=strip_tags(html_body),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient],
        html_message=html_body,
    )


def client_link(path):
    return f"{settings.CLIENT_URL.rstrip('/')}/{path.lstrip('/')}"


def send_verification_email(user, token):
    _send(
        "verify_email",
        "Verify Your Email Address - Nemesis",
        user.email,
        {"first_name": user.first_name, "link": client_link(f"verify-email/{token}")},
    )


def send_welcome_email(user):
    _send(
        "welcome",
        "Welcome to Nemesis!",
        user.email,
        {"first_name": user.first_name, "link": client_link("")},
    )


def send_password_reset_email(user, token):
    _send(
        "reset_password",
        "Reset Your Password - Nemesis",
        user.email,
        {"first_name": user.first_name, "link": client_link(f"reset-password/{token}")},
    )


def send_artist_application_email(user):
    _send(
        "artist_application",
        "Artist Application Received - Nemesis",
        user.email,
        {"first_name": user.first_name, "company_name": user.artist_info.get("companyName", "")},
    )


def send_artist_status_email(user, status):
    _send(
        "artist_status",
        "Your Artist Application Status - Nemesis",
        user.email,
        {"first_name": user.first_name, "status": status, "link": client_link("dashboard")},
    )


def send_order_confirmation_email(order):
    reference = f"{order.pk:06d}"
    _send(
        "order_confirmation",
        f"Order Confirmation #{reference} - Nemesis",
        order.user.email,
        {
            "first_name": order.user.first_name,
            "reference": reference,
            "order": order,
            "items": list(order.items.all()),
            "link": client_link(f"orders/{order.pk}"),
        },
    )
