"""Contacts: recipients for postcards, read from Google People."""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import structlog

logger = structlog.get_logger()

PEOPLE_CONNECTIONS_URL = "https://people.googleapis.com/v1/people/me/connections"


class ContactsAccessDenied(Exception):
    """The user has not granted access to their contacts."""


@dataclass
class Contact:
    identifier: str
    given_name: str = ""
    family_name: str = ""
    phone_numbers: list[str] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.given_name} {self.family_name}".strip()

    @property
    def initial(self) -> str:
        return self.given_name[:1]


@dataclass
class ContactsState:
    """What a contacts list shows: either contacts or an access-denied notice."""

    contacts: list[Contact] = field(default_factory=list)
    access_denied: bool = False


def _parse_person(person: dict) -> Contact:
    names = person.get("names") or [{}]
    primary = names[0]
    return Contact(
        identifier=person.get("resourceName", ""),
        given_name=primary.get("givenName", ""),
        family_name=primary.get("familyName", ""),
        phone_numbers=[p["value"] for p in person.get("phoneNumbers", []) if p.get("value")],
    )


class GoogleContactsClient:
    """Reads the signed-in user's contacts with an OAuth access token."""

    def __init__(self, access_token: str | None, timeout: float = 10.0):
        self.access_token = access_token
        self.timeout = timeout

    async def list_contacts(self) -> list[Contact]:
        if not self.access_token:
            raise ContactsAccessDenied("No contacts grant")

        contacts: list[Contact] = []
        params = {"personFields": "names,phoneNumbers", "pageSize": 1000}
        headers = {"Authorization": f"Bearer {self.access_token}"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while True:
                resp = await client.get(PEOPLE_CONNECTIONS_URL, params=params, headers=headers)
                if resp.status_code in (401, 403):
                    raise ContactsAccessDenied(f"People API returned {resp.status_code}")
                resp.raise_for_status()
                data = resp.json()
                contacts.extend(_parse_person(p) for p in data.get("connections", []))
                page_token = data.get("nextPageToken")
                if not page_token:
                    break
                params["pageToken"] = page_token

        return contacts


class ContactBook:
    """Caches the first successful contacts load for a screen."""

    def __init__(self, client: GoogleContactsClient):
        self.client = client
        self.state = ContactsState()
        self.loading = False

    async def load(self) -> ContactsState:
        if self.state.contacts:
            return self.state

        self.loading = True
        try:
            contacts = await self.client.list_contacts()
        except ContactsAccessDenied:
            logger.info("contacts_access_denied")
            self.state = ContactsState(access_denied=True)
        except Exception as e:
            logger.warning("contacts_fetch_failed", error=str(e))
            self.state = ContactsState()
        else:
            self.state = ContactsState(
                contacts=sorted(contacts, key=lambda c: c.given_name)
            )
        finally:
            self.loading = False
        return self.state
