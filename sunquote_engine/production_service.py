import logging
from dataclasses import dataclass
import requests
import streamlit as st

PVWATTS_API_ENDPOINT_V8 = "https://developer.nrel.gov/api/pvwatts/v8.json"
NREL_API_KEY_HOLDER = {"key": None}

# Fixed array assumptions. Azimuth 0 = north-facing, the best orientation in the southern hemisphere.
DEFAULT_AZIMUTH = 0
DEFAULT_TILT = 20
DEFAULT_ARRAY_TYPE = 1  # Fixed (roof mount)
DEFAULT_MODULE_TYPE = 0  # Standard
DEFAULT_LOSSES = 14  # System losses (%)
PVWATTS_MAX_CAPACITY_KW = 500000

production_logger = logging.getLogger('production_service')


@dataclass(frozen=True)
class ProductionResult:
    success: bool
    ac_annual_kwh: float | None = None
    error: str | None = None
    error_kind: str | None = None  # "network" | "status" | "malformed"


class PVWattsErrorPayload(Exception):
    """PVWatts answered 200 but reported errors in the body."""


@st.cache_data(ttl=3600, show_spinner=False)
def _pvwatts_request(params: dict):
    """Raw PVWatts call. Raises on any failure so that only good responses are cached."""
    response = requests.get(PVWATTS_API_ENDPOINT_V8, params=params, timeout=15)
    response.raise_for_status()
    data = response.json()
    if isinstance(data, dict) and data.get("errors"):
        errors = data["errors"]
        raise PVWattsErrorPayload(str(errors[0]) if isinstance(errors, list) else str(errors))
    return data


def fetch_annual_production(lat, lon, system_size_kw,
                            azimuth=DEFAULT_AZIMUTH, tilt=DEFAULT_TILT,
                            array_type=DEFAULT_ARRAY_TYPE, module_type=DEFAULT_MODULE_TYPE,
                            losses=DEFAULT_LOSSES) -> ProductionResult:
    """
    Annual AC energy (kWh/year) for a system at the given location from PVWatts v8.
    One request per call, no retries.
    """
    api_key = NREL_API_KEY_HOLDER["key"]
    if not api_key:
        return ProductionResult(success=False, error="The solar production service is not configured.",
                                error_kind="status")
    if lat is None or lon is None or system_size_kw is None:
        return ProductionResult(success=False, error="Latitude, longitude, or system size missing for PVWatts.",
                                error_kind="malformed")
    system_capacity = float(system_size_kw)
    if system_capacity <= 0 or system_capacity > PVWATTS_MAX_CAPACITY_KW:
        return ProductionResult(success=False, error=f"Invalid system capacity: {system_size_kw} kW.",
                                error_kind="malformed")

    params = {
        "api_key": api_key,
        "lat": lat,
        "lon": lon,
        "system_capacity": system_capacity,
        "azimuth": azimuth,
        "tilt": tilt,
        "array_type": array_type,
        "module_type": module_type,
        "losses": losses,
    }
    production_logger.info(f"PVWatts request: lat={lat}, lon={lon}, size={system_capacity} kW")
    try:
        data = _pvwatts_request(params)
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else "unknown"
        production_logger.error(f"PVWatts returned HTTP {status}")
        return ProductionResult(success=False, error_kind="status",
                                error=f"The solar production service returned an error (HTTP {status}). Please try again.")
    except PVWattsErrorPayload as e:
        production_logger.error(f"PVWatts response error: {e}")
        return ProductionResult(success=False, error_kind="status",
                                error=f"The solar production service reported an error: {e}")
    except requests.exceptions.JSONDecodeError as e:
        production_logger.error(f"PVWatts response could not be parsed: {e}")
        return ProductionResult(success=False, error_kind="malformed",
                                error="The solar production service sent an unreadable response. Please try again.")
    except requests.exceptions.RequestException as e:
        production_logger.error(f"PVWatts call failed: {e}")
        return ProductionResult(success=False, error_kind="network",
                                error="We couldn't reach the solar production service. Check your connection and try again.")

    try:
        ac_annual = float(data["outputs"]["ac_annual"])
    except (KeyError, TypeError, ValueError):
        production_logger.error("PVWatts response missing outputs.ac_annual")
        return ProductionResult(success=False, error_kind="malformed",
                                error="The solar production service sent an incomplete response. Please try again.")
    return ProductionResult(success=True, ac_annual_kwh=ac_annual)
