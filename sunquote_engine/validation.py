import math
import re
from sunquote_engine.form_state import (
    BILL_AMOUNT, BILL_FREQUENCY, CONSENT, EMAIL_ADDRESS, parse_amount
)
from sunquote_engine.utils import BILLING_FREQUENCY_MULTIPLIERS, POSTCODE_PATTERN

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_POSTCODE_RE = re.compile(POSTCODE_PATTERN)

VALIDATION_MESSAGES = {
    "address": "Please enter a valid 4-digit postcode.",
    "address_free_text": "Please enter your full street address.",
    "customEnergyInput": "Please enter your bill amount and how often you're billed.",
    "lead": "Please fill required fields and consent.",
    "default": "Please complete this step before continuing.",
}


def is_postcode(value) -> bool:
    return isinstance(value, str) and bool(_POSTCODE_RE.match(value.strip()))


def _is_empty(value) -> bool:
    return value is None or value == "" or value == [] or value is False


def is_bill_valid(form_data: dict) -> bool:
    amount = parse_amount(form_data.get(BILL_AMOUNT))
    if amount is None or not math.isfinite(amount) or amount <= 0:
        return False
    return form_data.get(BILL_FREQUENCY) in BILLING_FREQUENCY_MULTIPLIERS


def is_lead_valid(form_data: dict) -> bool:
    """A well-formed email address and an explicit consent tick."""
    email = form_data.get(EMAIL_ADDRESS)
    consent = form_data.get(CONSENT)
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email)) and consent is True


def is_step_valid(step, form_data: dict) -> bool:
    """
    Decides whether the current answers allow leaving `step`.
    The lead step is always valid here; its contact check lives in `is_lead_valid`.
    """
    if step.type in ("intro", "results", "thankyou", "lead"):
        return True

    if step.type == "customEnergyInput":
        if step.optional and _is_empty(form_data.get(BILL_AMOUNT)) and _is_empty(form_data.get(BILL_FREQUENCY)):
            return True
        # An optional user energy price never blocks
        return is_bill_valid(form_data)

    value = form_data.get(step.id)

    # Optional steps with nothing entered yet don't block forward progress
    if step.optional and _is_empty(value):
        return True

    if step.type == "address":
        if step.free_text:
            return isinstance(value, str) and value.strip() != ""
        return is_postcode(value)

    if step.type == "checkbox":
        if step.multi_select:
            return isinstance(value, (list, tuple)) and len(value) > 0
        return value is True

    # radio / select / text
    if isinstance(value, str):
        return value.strip() != ""
    return not _is_empty(value)


def can_advance(step, form_data: dict) -> bool:
    if step.type == "lead":
        return is_lead_valid(form_data)
    return is_step_valid(step, form_data)


def validation_message(step) -> str:
    if step.type == "address" and step.free_text:
        return VALIDATION_MESSAGES["address_free_text"]
    return VALIDATION_MESSAGES.get(step.type, VALIDATION_MESSAGES["default"])
