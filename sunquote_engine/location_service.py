import logging
import time
from dataclasses import dataclass
import requests
import streamlit as st
from sunquote_engine.incentive_definitions import jurisdiction_from_state_name
from sunquote_engine.postcode_zones import lookup_postcode
from sunquote_engine.utils import (
    AUTOCOMPLETE_DEBOUNCE_SECONDS, AUTOCOMPLETE_MIN_CHARS, VALID_CERTIFICATE_ZONES
)
from sunquote_engine.validation import is_postcode

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"
NOMINATIM_CONFIG = {"user_agent": "SunQuoteStreamlitApp/1.0"}
NSW_VIEWBOX = "141,-28,154,-37.5"  # lon_min, lat_max, lon_max, lat_min
SUGGESTION_LIMIT = 10

location_logger = logging.getLogger('location_service')


@dataclass(frozen=True)
class GeocodeCandidate:
    """One entry of the geocoder's ordered result list."""
    display_name: str
    latitude: float | None
    longitude: float | None
    postcode: str | None
    state: str | None


@dataclass(frozen=True)
class LocationResult:
    """Result of resolving a postcode/address to jurisdiction, zone and coordinates."""
    success: bool
    postcode: str | None = None
    jurisdiction: str | None = None
    certificate_zone: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    display_name: str | None = None
    error: str | None = None
    error_kind: str | None = None


def _failure(error, error_kind, postcode=None):
    return LocationResult(success=False, postcode=postcode, error=error, error_kind=error_kind)


@st.cache_data(ttl=3600, show_spinner=False)
def _nominatim_search(params: dict, user_agent: str):
    """Raw Nominatim call. Raises on failure so errors are never cached."""
    response = requests.get(NOMINATIM_SEARCH_URL, params=params,
                            headers={'User-Agent': user_agent}, timeout=10)
    response.raise_for_status()
    return response.json()


def _to_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_candidate(item: dict) -> GeocodeCandidate:
    address = item.get("address") or {}
    return GeocodeCandidate(
        display_name=item.get("display_name", ""),
        latitude=_to_float(item.get("lat")),
        longitude=_to_float(item.get("lon")),
        postcode=address.get("postcode"),
        state=address.get("state"),
    )


def search_nominatim(query=None, postalcode=None, limit=1, bias_viewbox=False):
    """
    Returns (candidates, error_message_or_none, error_kind_or_none).
    A postcode-only search uses the structured 'postalcode' parameter to avoid
    matching house numbers; anything else goes through the free-text 'q' parameter.
    """
    params = {"format": "jsonv2", "addressdetails": 1, "countrycodes": "au", "limit": limit}
    if postalcode:
        params["postalcode"] = postalcode
    else:
        params["q"] = query
    if bias_viewbox:
        params["viewbox"] = NSW_VIEWBOX
        params["bounded"] = 0

    location_logger.info(f"Nominatim search: {params.get('postalcode') or params.get('q')!r}")
    try:
        raw_results = _nominatim_search(params, NOMINATIM_CONFIG["user_agent"])
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else "unknown"
        location_logger.error(f"Nominatim returned HTTP {status}")
        return [], f"The location service returned an error (HTTP {status}). Please try again.", "status"
    except requests.exceptions.JSONDecodeError as e:
        location_logger.error(f"Nominatim response could not be parsed: {e}")
        return [], "The location service sent an unreadable response. Please try again.", "malformed"
    except requests.exceptions.RequestException as e:
        location_logger.error(f"Nominatim request failed: {e}")
        return [], "We couldn't reach the location service. Check your connection and try again.", "network"

    if not isinstance(raw_results, list):
        return [], "The location service sent an unreadable response. Please try again.", "malformed"
    return [_parse_candidate(item) for item in raw_results if isinstance(item, dict)], None, None


def _resolve_from_candidate(postcode: str, candidate: GeocodeCandidate) -> LocationResult:
    if candidate.latitude is None or candidate.longitude is None:
        return _failure("Coordinates unavailable for this location. Please try again.", "no_coordinates", postcode)

    # The static table is authoritative; the geocoder only supplies coordinates and a hint
    record = lookup_postcode(postcode)
    if record and record.get("certificate_zone") in VALID_CERTIFICATE_ZONES:
        return LocationResult(
            success=True,
            postcode=postcode,
            jurisdiction=record["jurisdiction"],
            certificate_zone=record["certificate_zone"],
            latitude=candidate.latitude,
            longitude=candidate.longitude,
            display_name=candidate.display_name or None,
        )

    hint = jurisdiction_from_state_name(candidate.state)
    if hint:
        # Jurisdiction alone is not enough: never guess a certificate zone
        location_logger.warning(f"Postcode {postcode} resolved to {hint} but has no certificate zone")
        return _failure(
            f"We found your state ({hint}) but can't determine the solar zone for postcode {postcode} yet. "
            "Please check the postcode and try again.",
            "unresolved", postcode,
        )
    location_logger.warning(f"Postcode {postcode}: cannot determine jurisdiction or zone")
    return _failure(
        f"We can't determine the state or solar zone for postcode {postcode}. Please check it and try again.",
        "unresolved", postcode,
    )


def resolve_location(postcode: str) -> LocationResult:
    """
    Resolves a 4-digit postcode to jurisdiction, certificate zone and coordinates.
    Malformed postcodes are rejected before any network call.
    """
    if not is_postcode(postcode):
        return _failure("Please enter a valid 4-digit postcode.", "invalid_input")
    postcode = postcode.strip()

    candidates, error, error_kind = search_nominatim(postalcode=postcode)
    if error:
        return _failure(error, error_kind, postcode)
    if not candidates:
        return _failure(f"We couldn't find postcode {postcode}. Please check it and try again.", "not_found", postcode)

    return _resolve_from_candidate(postcode, candidates[0])


def resolve_address(address_text: str, selected: GeocodeCandidate | None = None) -> LocationResult:
    """
    Free-text variant: resolves a street address via its postcode.
    A suggestion the user picked (and hasn't edited since) is used without a new lookup.
    """
    if not address_text or not address_text.strip():
        return _failure("Please enter your full street address.", "invalid_input")

    if selected is not None and selected.display_name == address_text and selected.postcode:
        location_logger.info("Using selected suggestion without re-verifying")
        candidate = selected
    else:
        candidates, error, error_kind = search_nominatim(query=address_text.strip())
        if error:
            return _failure(error, error_kind)
        if not candidates:
            return _failure("We couldn't find that address. Please check it and try again.", "not_found")
        candidate = candidates[0]

    if not is_postcode(candidate.postcode or ""):
        return _failure("That address has no Australian postcode. Please enter a more complete address.",
                        "unresolved")
    return _resolve_from_candidate(candidate.postcode.strip(), candidate)


def fetch_address_suggestions(text: str) -> list[GeocodeCandidate]:
    """Autocomplete suggestions. Short input never triggers a lookup."""
    if not text or len(text.strip()) < AUTOCOMPLETE_MIN_CHARS:
        return []
    candidates, error, _ = search_nominatim(query=text.strip(), limit=SUGGESTION_LIMIT, bias_viewbox=True)
    if error:
        location_logger.info("Suggestions unavailable, hiding list")
        return []
    return candidates


class SuggestionDebouncer:
    """
    Debounces autocomplete lookups: every keystroke cancels the pending lookup and
    schedules a fresh one no sooner than `quiet_interval` seconds later.
    """

    def __init__(self, quiet_interval=AUTOCOMPLETE_DEBOUNCE_SECONDS, clock=time.monotonic):
        self.quiet_interval = quiet_interval
        self._clock = clock
        self._pending_query = None
        self._due_at = None
        self.suggestions = []

    @property
    def has_pending(self) -> bool:
        return self._pending_query is not None

    def keystroke(self, text: str):
        self.cancel()
        if not text or len(text.strip()) < AUTOCOMPLETE_MIN_CHARS:
            self.suggestions = []
            return
        self._pending_query = text
        self._due_at = self._clock() + self.quiet_interval

    def cancel(self):
        self._pending_query = None
        self._due_at = None

    def seconds_until_due(self) -> float:
        """Time left before the pending lookup may run; 0 when nothing is pending or it is already due."""
        if self._pending_query is None:
            return 0.0
        return max(0.0, self._due_at - self._clock())

    def due_query(self) -> str | None:
        """Returns the pending query once its quiet interval has passed (only once)."""
        if self._pending_query is None or self._clock() < self._due_at:
            return None
        query = self._pending_query
        self.cancel()
        return query

    def poll(self, fetch=fetch_address_suggestions) -> bool:
        """Runs a due lookup and stores its suggestions. Returns True if a lookup ran."""
        query = self.due_query()
        if query is None:
            return False
        self.suggestions = fetch(query)
        return True
