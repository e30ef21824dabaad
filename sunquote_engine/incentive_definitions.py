from sunquote_engine.utils import DEFAULT_FEED_IN_RATE

# Incentive profiles per jurisdiction (AUD). Values are indicative and change with
# state budgets; every figure shown to the customer is labelled as an estimate.
# feed_in_* are $/kWh. A profile with feed_in_fixed set pays a single regulated rate.
INCENTIVE_PROFILES = {
    "NSW": {
        "name": "New South Wales",
        "residential_rebate": None,
        "business_rebate": None,
        "battery_rebate": 1600,
        "battery_rebate_type": "cash",
        "feed_in_min": 0.04,
        "feed_in_max": 0.10,
        "feed_in_fixed": None,
        "default_energy_price": 0.327,
        "notes": "Peak Demand Reduction Scheme battery incentive; retailer feed-in tariffs vary.",
    },
    "VIC": {
        "name": "Victoria",
        "residential_rebate": 1400,
        "business_rebate": 3500,
        "battery_rebate": 8800,
        "battery_rebate_type": "loan",
        "feed_in_min": 0.033,
        "feed_in_max": None,
        "feed_in_fixed": None,
        "default_energy_price": 0.28,
        "notes": "Solar Homes panel rebate, Solar for Business rebate and interest-free battery loan.",
    },
    "QLD": {
        "name": "Queensland",
        "residential_rebate": None,
        "business_rebate": None,
        "battery_rebate": None,
        "battery_rebate_type": None,
        "feed_in_min": 0.05,
        "feed_in_max": 0.12,
        "feed_in_fixed": None,
        "default_energy_price": 0.31,
        "notes": "Regional customers on Ergon receive a regulated feed-in tariff.",
    },
    "SA": {
        "name": "South Australia",
        "residential_rebate": None,
        "business_rebate": None,
        "battery_rebate": None,
        "battery_rebate_type": None,
        "feed_in_min": 0.04,
        "feed_in_max": 0.10,
        "feed_in_fixed": None,
        "default_energy_price": 0.42,
        "notes": "Highest retail prices in the NEM; strong self-consumption value.",
    },
    "WA": {
        "name": "Western Australia",
        "residential_rebate": None,
        "business_rebate": None,
        "battery_rebate": 5000,
        "battery_rebate_type": "cash",
        "feed_in_min": None,
        "feed_in_max": None,
        "feed_in_fixed": 0.025,
        "default_energy_price": 0.31,
        "notes": "Distributed Energy Buyback Scheme pays a fixed export rate.",
    },
    "TAS": {
        "name": "Tasmania",
        "residential_rebate": None,
        "business_rebate": None,
        "battery_rebate": 10000,
        "battery_rebate_type": "loan",
        "feed_in_min": None,
        "feed_in_max": None,
        "feed_in_fixed": 0.0889,
        "default_energy_price": 0.30,
        "notes": "Energy Saver Loan Scheme covers panels and batteries.",
    },
    "ACT": {
        "name": "Australian Capital Territory",
        "residential_rebate": None,
        "business_rebate": None,
        "battery_rebate": 15000,
        "battery_rebate_type": "loan",
        "feed_in_min": 0.04,
        "feed_in_max": 0.10,
        "feed_in_fixed": None,
        "default_energy_price": 0.26,
        "notes": "Sustainable Household Scheme zero-interest loans.",
    },
    "NT": {
        "name": "Northern Territory",
        "residential_rebate": None,
        "business_rebate": None,
        "battery_rebate": 12000,
        "battery_rebate_type": "cash",
        "feed_in_min": None,
        "feed_in_max": None,
        "feed_in_fixed": 0.083,
        "default_energy_price": 0.29,
        "notes": "Home and Business Battery Scheme grant.",
    },
    "DEFAULT": {
        "name": "Australia",
        "residential_rebate": None,
        "business_rebate": None,
        "battery_rebate": None,
        "battery_rebate_type": None,
        "feed_in_min": None,
        "feed_in_max": None,
        "feed_in_fixed": None,
        "default_energy_price": None,
        "notes": "Federal STCs apply everywhere; no state programme found.",
    },
}

# Region names as returned by the geocoder's address breakdown
STATE_NAME_TO_CODE = {
    "new south wales": "NSW",
    "victoria": "VIC",
    "queensland": "QLD",
    "south australia": "SA",
    "western australia": "WA",
    "tasmania": "TAS",
    "australian capital territory": "ACT",
    "northern territory": "NT",
}


def get_incentive_profile(jurisdiction: str | None) -> dict:
    """Get the incentive profile for a jurisdiction, falling back to DEFAULT."""
    if not jurisdiction:
        return INCENTIVE_PROFILES["DEFAULT"]
    return INCENTIVE_PROFILES.get(jurisdiction.upper(), INCENTIVE_PROFILES["DEFAULT"])


def jurisdiction_from_state_name(state_name: str | None) -> str | None:
    """
    Maps a geocoder region ("New South Wales") or a bare code ("nsw") to a
    jurisdiction code. Returns None when the region is not recognised.
    """
    if not state_name:
        return None
    cleaned = state_name.strip()
    if cleaned.upper() in INCENTIVE_PROFILES and cleaned.upper() != "DEFAULT":
        return cleaned.upper()
    return STATE_NAME_TO_CODE.get(cleaned.lower())


def select_feed_in_rate(profile: dict) -> float:
    # Priority: fixed rate > minimum rate > global default
    if profile.get("feed_in_fixed") is not None:
        return profile["feed_in_fixed"]
    if profile.get("feed_in_min") is not None:
        return profile["feed_in_min"]
    return DEFAULT_FEED_IN_RATE


def select_panel_rebate(profile: dict, property_type: str | None) -> float:
    """
    Business properties take the business rebate when the jurisdiction has one,
    otherwise everyone gets the residential figure (or nothing).
    """
    if property_type == "business" and profile.get("business_rebate") is not None:
        return profile["business_rebate"]
    return profile.get("residential_rebate") or 0


def describe_battery_incentive(profile: dict) -> str:
    amount = profile.get("battery_rebate")
    if not amount:
        return "No state battery incentive found"
    if profile.get("battery_rebate_type") == "loan":
        return f"Interest-free loan up to ${amount:,}"
    return f"Up to ${amount:,} battery rebate"
