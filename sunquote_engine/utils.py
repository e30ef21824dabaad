import math
import numpy as np

# --- Important Constants ---
# Costing (AUD)
COST_PER_KWP = 1140  # Installed cost per kWp before incentives
DEFAULT_SYSTEM_SIZE_KWP = 6.6  # Used when no usable bill data was entered
SQ_METERS_PER_KWP = 6.6  # Roof area needed per kWp

# Small-scale Technology Certificates (STCs)
STC_PRICE = 38.50  # $ per certificate
STC_DEEMING_PERIOD_YEARS = 9
VALID_CERTIFICATE_ZONES = (1, 2, 3, 4)

# Energy pricing fallbacks when the jurisdiction profile has nothing better
DEFAULT_ENERGY_PRICE = 0.30  # $/kWh
DEFAULT_FEED_IN_RATE = 0.05  # $/kWh

# Share of annual production exported to the grid; the remainder is self-consumed
EXPORT_SHARE = 0.5

# Environmental impact
GRID_EMISSION_FACTOR = 0.00068  # Tonnes CO2 per kWh of grid electricity
CO2_TONNES_PER_TREE_PER_YEAR = 0.022

# Billing frequency -> bills per year
BILLING_FREQUENCY_MULTIPLIERS = {
    "monthly": 12,
    "bimonthly": 6,
    "quarterly": 4,
}

# --- System Size Buckets ---
# (upper annual kWh threshold, system size kWp). The last bucket is unbounded.
SYSTEM_SIZE_BUCKETS = [
    (4000, 3.3),
    (6000, 5.0),
    (8000, 6.6),
    (10000, 8.0),
    (math.inf, 10.0),
]

# Autocomplete
AUTOCOMPLETE_DEBOUNCE_SECONDS = 0.5
AUTOCOMPLETE_MIN_CHARS = 4

POSTCODE_PATTERN = r"^\d{4}$"

# Step types excluded from the progress badges
NON_PROGRESS_STEP_TYPES = ("intro", "lead", "results", "thankyou")


# --- NEW: Static Tooltips / Helper Texts ---
TOOLTIPS = {
    "postcode": "We use your postcode to find your state rebates and solar zone.",
    "billAmount": "Use the total from a recent electricity bill, including GST.",
    "billFrequency": "How often you receive an electricity bill.",
    "energyPrice": "Optional. Your usage charge in $/kWh, found on your bill. We use a state average if left blank.",
    "consent": "We only use your details to prepare your quote.",
}


def snap_to_system_size(annual_kwh: float) -> float:
    """
    Returns the smallest bucket size whose threshold is >= the annual consumption.
    Anything above the largest finite threshold falls into the unbounded bucket.
    """
    thresholds = np.array([threshold for threshold, _ in SYSTEM_SIZE_BUCKETS])
    bucket_index = int(np.searchsorted(thresholds, annual_kwh, side="left"))
    bucket_index = min(bucket_index, len(SYSTEM_SIZE_BUCKETS) - 1)
    return SYSTEM_SIZE_BUCKETS[bucket_index][1]


def round_half_up(value: float, step: float = 1) -> float:
    """Rounds to the nearest multiple of `step`, halves away from zero on the positive side."""
    return math.floor(value / step + 0.5) * step


def format_currency(value: float) -> str:
    """Whole-dollar display, e.g. 11400 -> '$11,400 AUD', -250 -> '-$250 AUD'."""
    rounded = int(round_half_up(value))
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,} AUD"


def format_rate(value: float) -> str:
    return f"${value:.3f}/kWh"


# --- Progress Badge Utility ---
def generate_progress_bar_markdown(step_titles, current_position):
    """
    Generates markdown for a progress bar with completed, current, and future steps highlighted.
    `step_titles` are the visible steps in order, `current_position` is 1-based.
    """

    progress_display_list = []
    for step_num, title in enumerate(step_titles, start=1):
        if step_num < current_position:
            # Completed step: Green badge
            progress_display_list.append(f":green-badge[:material/task_alt: {step_num}: {title}]")
        elif step_num == current_position:
            # Current/active step: Violet badge
            progress_display_list.append(f":violet-badge[:material/screen_record: {step_num}: {title}]")
        else:
            # Not yet visited step: Grey badge
            progress_display_list.append(f":grey-badge[:material/radio_button_partial: {step_num}]")

    return " **--** ".join(progress_display_list)
