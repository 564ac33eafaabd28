"""Email templates for activation links and password resets."""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from urllib.parse import quote, urlencode

from academyhub.core.config import get_settings
from academyhub.models.enums import InvitationType

SUBJECTS: dict[InvitationType, str] = {
    InvitationType.CREATE_ACADEMY: "Academy Admin Invitation",
    InvitationType.BATCH_COACH: "Batch Coach Invitation",
    InvitationType.BATCH_STUDENT: "Batch Student Invitation",
}

PASSWORD_RESET_SUBJECT = "Reset your password"


@dataclass(frozen=True)
class ComposedEmail:
    subject: str
    text: str
    html: str
    link: str


def build_activation_url(invitation_type: InvitationType, name: str, token: str) -> str:
    """Deep link of the form ``<frontend>/accept-invite?type=..&name=..&token=..``."""
    base = get_settings().frontend_url.rstrip("/")
    query = urlencode(
        {"type": invitation_type.value, "name": name, "token": token},
        quote_via=quote,
    )
    return f"{base}/accept-invite?{query}"


def _link_name(invitation_type: InvitationType, data: dict, academy_name: str | None, batch_code: str | None) -> str:
    full_name = f"{data.get('firstName', '')} {data.get('lastName', '')}".strip()
    if invitation_type is InvitationType.CREATE_ACADEMY:
        return data["academyName"]
    if invitation_type is InvitationType.BATCH_COACH:
        sub_role = data.get("subRole")
        role_part = f" as ({sub_role})" if sub_role else ""
        return f"{batch_code}{role_part} from {academy_name}"
    return f"{full_name} from {academy_name}"


def _intro(invitation_type: InvitationType, data: dict, academy_name: str | None, batch_code: str | None) -> str:
    if invitation_type is InvitationType.CREATE_ACADEMY:
        return f'You are invited to create the academy "{data["academyName"]}" and join it as an admin!'
    if invitation_type is InvitationType.BATCH_COACH:
        sub_role = data.get("subRole")
        as_role = f"a coach ({sub_role})" if sub_role else "a coach"
        return f'You are invited to join the academy "{academy_name}" in the batch "{batch_code}" as {as_role}!'
    return f'You are invited to join the academy "{academy_name}" in the batch "{batch_code}" as a student!'


def _render(
    recipient_name: str,
    intro: str,
    rows: list[tuple[str, str]],
    button_text: str,
    link: str,
    outro: str,
) -> tuple[str, str]:
    text_lines = [f"Hi {recipient_name},", "", intro, ""]
    text_lines += [f"{label}: {value}" for label, value in rows]
    text_lines += ["", f"{button_text}: {link}", "", outro]
    text = "\n".join(text_lines)

    table = "".join(
        f"<tr><td><strong>{escape(label)}</strong></td><td>{escape(value)}</td></tr>"
        for label, value in rows
    )
    html = (
        "<html><body>"
        f"<p>Hi {escape(recipient_name)},</p>"
        f"<p>{escape(intro)}</p>"
        f"<table>{table}</table>"
        f'<p><a href="{escape(link, quote=True)}" '
        'style="background:#22BC66;color:#fff;padding:10px 16px;text-decoration:none;">'
        f"{escape(button_text)}</a></p>"
        f"<p>{escape(outro)}</p>"
        "</body></html>"
    )
    return text, html


def compose_invitation_email(
    invitation_type: InvitationType,
    data: dict,
    email: str,
    temporary_password: str,
    token: str,
    academy_name: str | None = None,
    batch_code: str | None = None,
) -> ComposedEmail:
    """Compose the activation email for an invitation.

    The temporary password appears here and nowhere else; only its hash is
    persisted.

    Args:
        invitation_type: Invitation type, selects subject and wording
        data: Invitation payload (names, academyName, subRole)
        email: Recipient address
        temporary_password: Plaintext temporary credential
        token: Invitation token for the deep link
        academy_name: Target academy (batch invitations)
        batch_code: Target batch code (batch invitations)

    Returns:
        ComposedEmail with subject, plain text, HTML and the activation link
    """
    link = build_activation_url(
        invitation_type, _link_name(invitation_type, data, academy_name, batch_code), token
    )
    recipient_name = f"{data.get('firstName', '')} {data.get('lastName', '')}".strip() or email
    text, html = _render(
        recipient_name=recipient_name,
        intro=_intro(invitation_type, data, academy_name, batch_code),
        rows=[("Email", email), ("Temporary Password", temporary_password)],
        button_text="Accept Invitation",
        link=link,
        outro="If you have any questions, feel free to reply to this email.",
    )
    return ComposedEmail(subject=SUBJECTS[invitation_type], text=text, html=html, link=link)


def compose_password_reset_email(recipient_name: str, token: str) -> ComposedEmail:
    """Compose the password reset email."""
    base = get_settings().frontend_url.rstrip("/")
    link = f"{base}/reset-password?{urlencode({'token': token})}"
    minutes = get_settings().reset_token_expire_minutes
    text, html = _render(
        recipient_name=recipient_name,
        intro="We received a request to reset your password.",
        rows=[("Link valid for", f"{minutes} minutes")],
        button_text="Reset Password",
        link=link,
        outro="If you did not request a password reset, you can ignore this email.",
    )
    return ComposedEmail(subject=PASSWORD_RESET_SUBJECT, text=text, html=html, link=link)
