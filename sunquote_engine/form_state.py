"""
Form State helpers.

Form State is a plain dict of field id -> value (str, list[str], bool or number).
Everything here is a pure function: callers get a new dict back and the wizard
decides whether to keep it.
"""

# --- Answer field ids (match StepDefinition ids / sub-fields) ---
POSTCODE = "postcode"
OWNERSHIP = "ownership"
PROPERTY_TYPE = "propertyType"
BILL_AMOUNT = "billAmount"
BILL_FREQUENCY = "billFrequency"
ENERGY_PRICE = "energyPrice"
BATTERY_INTEREST = "batteryInterest"
FUTURE_USAGE = "futureUsage"
ROOF_ORIENTATION = "roofOrientation"
ROOF_PITCH = "roofPitch"
FIRST_NAME = "firstName"
EMAIL_ADDRESS = "emailAddress"
PHONE_NUMBER = "phoneNumber"
CONSENT = "consent"

# --- Derived keys written after location resolution ---
ADDRESS = "address"
JURISDICTION = "jurisdiction"
CERTIFICATE_ZONE = "certificateZone"
LATITUDE = "lat"
LONGITUDE = "lon"
SELECTED_SUGGESTION = "selectedSuggestion"

LOCATION_KEYS = (ADDRESS, JURISDICTION, CERTIFICATE_ZONE, LATITUDE, LONGITUDE)

# Never sent to the lead-capture backend
INTERNAL_KEYS = (LATITUDE, LONGITUDE, SELECTED_SUGGESTION, "calculatedResults")

EXCLUSIVE_OPTION = "none"


def normalize_exclusive_selection(previous, current, exclusive=EXCLUSIVE_OPTION):
    """
    "None of the above" and any other option are mutually exclusive.
    Whichever was picked most recently wins; duplicates are dropped and order is kept.
    """
    previous = list(previous or [])
    deduped = list(dict.fromkeys(v for v in (current or []) if v))

    newly_added = [v for v in deduped if v not in previous]
    if exclusive in newly_added:
        return [exclusive]
    if exclusive in deduped and len(deduped) > 1:
        return [v for v in deduped if v != exclusive]
    return deduped


def apply_field_edit(form_data: dict, field_id: str, value, step=None) -> dict:
    """Returns a new Form State with `field_id` set to `value`."""
    updated = dict(form_data)
    if step is not None and step.type == "checkbox" and step.multi_select and field_id == step.id:
        value = normalize_exclusive_selection(form_data.get(field_id), value)
    if isinstance(value, str) and field_id in (POSTCODE, EMAIL_ADDRESS):
        value = value.strip()
    updated[field_id] = value
    return updated


def apply_location(form_data: dict, location) -> dict:
    """Writes the resolved jurisdiction, zone and coordinates into a new Form State."""
    updated = dict(form_data)
    updated[JURISDICTION] = location.jurisdiction
    updated[CERTIFICATE_ZONE] = location.certificate_zone
    updated[LATITUDE] = location.latitude
    updated[LONGITUDE] = location.longitude
    if location.display_name:
        updated[ADDRESS] = location.display_name
    if location.postcode:
        updated[POSTCODE] = location.postcode
    return updated


def clear_location(form_data: dict, keep=()) -> dict:
    """Drops the derived location keys. `keep` protects a key the user typed (free-text address)."""
    return {k: v for k, v in form_data.items() if k not in LOCATION_KEYS or k in keep}


def has_resolved_location(form_data: dict) -> bool:
    return all(form_data.get(k) is not None for k in (JURISDICTION, CERTIFICATE_ZONE, LATITUDE, LONGITUDE))


def parse_amount(value):
    """Parses a user-entered number ("$1,250.50", 300, "0.29"). Returns None if not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace("$", "").replace(",", "").strip())
    except ValueError:
        return None
