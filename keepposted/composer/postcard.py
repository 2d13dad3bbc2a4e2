"""Postcard composer.

Sending only records an entry in the session's activity log; postcards
are not stored anywhere.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from keepposted.composer.contacts import Contact
from keepposted.composer.templates import DEFAULT_TEMPLATE, PostcardTemplate, get_template
from keepposted.session import SessionState

logger = structlog.get_logger()

RECIPIENT_PLACEHOLDER = "Select a Contact"
MESSAGE_PREVIEW_PLACEHOLDER = "Your message will appear here..."
RECIPIENT_PREVIEW_PLACEHOLDER = "Recipient"


@dataclass
class PostcardData:
    template: PostcardTemplate
    message: str
    to_name: str
    from_name: str


class PostcardComposer:
    def __init__(self, session: SessionState):
        self.session = session
        self.template: PostcardTemplate = DEFAULT_TEMPLATE
        self.message: str = ""
        self.to_name: str = RECIPIENT_PLACEHOLDER

    def select_template(self, template_id: int) -> PostcardTemplate:
        self.template = get_template(template_id)
        return self.template

    def choose_recipient(self, contact: Contact) -> None:
        self.to_name = f"{contact.given_name} {contact.family_name}"

    @property
    def has_recipient(self) -> bool:
        return self.to_name != RECIPIENT_PLACEHOLDER

    @property
    def char_count(self) -> int:
        return len(self.message)

    @property
    def can_send(self) -> bool:
        return self.has_recipient and bool(self.message)

    def preview(self) -> PostcardData:
        return PostcardData(
            template=self.template,
            message=self.message or MESSAGE_PREVIEW_PLACEHOLDER,
            to_name=self.to_name if self.has_recipient else RECIPIENT_PREVIEW_PLACEHOLDER,
            from_name=self.session.sender_name,
        )

    def send(self) -> bool:
        if not self.can_send:
            return False
        self.session.add_activity(f"Postcard Sent to {self.to_name}")
        logger.info("postcard_sent", user_id=self.session.user_id, template=self.template.name)
        return True
