"""
Member Sync - Field Extractor

Turns the loosely-shaped Skool webhook payload into a NormalizedMemberEvent.
Skool (and the Zapier/Make bridges in front of it) do not agree on key names,
so each field is looked up under several candidate keys; the first truthy
value wins.
"""

import json
import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from .errors import MalformedInput, MissingEmailError
from .models import NormalizedMemberEvent

logger = logging.getLogger(__name__)

EMAIL_KEYS = ("email", "Email", "member_email", "user_email")
NAME_KEYS = ("name", "full_name")
MEMBER_ID_KEYS = ("id", "user_id", "member_id")
PAID_KEY = "isPaid"


def first_present(payload: Mapping[str, Any], keys: Iterable[str]) -> Optional[Any]:
    """Return the first truthy value found under ``keys``, in order."""
    for key in keys:
        value = payload.get(key)
        if value:
            return value
    return None


def parse_member_payload(body: bytes) -> Dict[str, Any]:
    """
    Parse a raw request body into a member event mapping.

    An empty body is an empty event (it will fail email extraction later).

    Raises:
        MalformedInput: If the body is not a JSON object
    """
    if not body:
        return {}

    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedInput(f"Invalid JSON body: {e}") from e

    if not isinstance(data, dict):
        raise MalformedInput(f"Expected a JSON object, got {type(data).__name__}")

    return data


def extract_member_event(payload: Mapping[str, Any]) -> NormalizedMemberEvent:
    """
    Extract and normalize member fields from a webhook payload.

    Args:
        payload: Raw member event

    Returns:
        NormalizedMemberEvent with the resolved email

    Raises:
        MissingEmailError: If no email key holds a value
        MalformedInput: If the email value is not a string
    """
    email = first_present(payload, EMAIL_KEYS)
    logger.info(f"Extracted email: {email}")

    if not email:
        raise MissingEmailError(available_fields=list(payload.keys()))

    if not isinstance(email, str):
        raise MalformedInput(f"Email must be a string, got {type(email).__name__}")

    name = first_present(payload, NAME_KEYS) or email.split("@")[0]
    member_id = first_present(payload, MEMBER_ID_KEYS)

    # Audit copy carries the resolved email under the canonical key
    raw = dict(payload)
    raw["email"] = email

    return NormalizedMemberEvent(
        email=email,
        name=str(name),
        member_id=member_id,
        is_paid=bool(payload.get(PAID_KEY)),
        raw=raw,
    )
