"""Recipient notification composed after a successful send.

The payload is advisory only: it is handed to whatever mail client the
operator uses and plays no part in the audit record.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

DEFAULT_GREETING_NAME = "Customer"
SUBJECT = "[Token delivery] Your tokens have been sent"
RULE = "=" * 50

BODY_TEMPLATE = """Dear {name},

Thank you for your purchase. This is {sender}.
The transfer of your tokens has been completed as follows.
Please review the details below.

{rule}
Transfer details
{rule}
[Token IDs]:
{token_ids}

Transaction (certificate)
{tx_url}
{rule}

If you have any questions, please do not hesitate to contact us.

--------------------------------------------------
{sender}
--------------------------------------------------
"""


@dataclass(frozen=True)
class MailNotification:
    email: str
    subject: str
    body: str

    def mailto_url(self) -> str:
        return f"mailto:{self.email}?subject={quote(self.subject)}&body={quote(self.body)}"

    def gmail_url(self) -> str:
        return (
            "https://mail.google.com/mail/?view=cm&fs=1"
            f"&to={quote(self.email)}&su={quote(self.subject)}&body={quote(self.body)}"
        )

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "subject": self.subject,
            "body": self.body,
            "mailto_url": self.mailto_url(),
            "gmail_url": self.gmail_url(),
        }


def compose_send_notification(
    email: str,
    name: Optional[str],
    commit_id: str,
    token_ids: str,
    explorer_tx_url: str,
    sender_name: str,
) -> MailNotification:
    """Build the delivery notice for a recipient."""
    body = BODY_TEMPLATE.format(
        name=(name or "").strip() or DEFAULT_GREETING_NAME,
        sender=sender_name,
        rule=RULE,
        token_ids=token_ids,
        tx_url=f"{explorer_tx_url}{commit_id}",
    )
    return MailNotification(email=email, subject=SUBJECT, body=body)
