import logging
import math
from dataclasses import dataclass
import numpy as np
import pandas as pd
from sunquote_engine.form_state import (
    BATTERY_INTEREST, BILL_AMOUNT, BILL_FREQUENCY, CERTIFICATE_ZONE, ENERGY_PRICE,
    JURISDICTION, LATITUDE, LONGITUDE, POSTCODE, PROPERTY_TYPE, parse_amount
)
from sunquote_engine.incentive_definitions import (
    describe_battery_incentive, get_incentive_profile,
    select_feed_in_rate, select_panel_rebate
)
from sunquote_engine.production_service import fetch_annual_production
from sunquote_engine.utils import (
    BILLING_FREQUENCY_MULTIPLIERS, CO2_TONNES_PER_TREE_PER_YEAR, COST_PER_KWP,
    DEFAULT_ENERGY_PRICE, DEFAULT_SYSTEM_SIZE_KWP, EXPORT_SHARE, GRID_EMISSION_FACTOR,
    SQ_METERS_PER_KWP, STC_DEEMING_PERIOD_YEARS, STC_PRICE, VALID_CERTIFICATE_ZONES,
    format_currency, format_rate, round_half_up, snap_to_system_size
)

calc_logger = logging.getLogger('calculation_engine')

PAYBACK_YEARS = "years"
PAYBACK_IMMEDIATE = "immediate"
PAYBACK_NOT_APPLICABLE = "not_applicable"

PROJECTION_YEARS = 25


@dataclass(frozen=True)
class ResultReport:
    """
    One completed estimate. Never mutated; a recalculation produces a new report.
    Money is kept unrounded here and rounded in `display_fields`.
    """
    postcode: str
    jurisdiction: str
    certificate_zone: int
    estimated_consumption_kwh: float | None
    system_size_kwp: float
    annual_production_kwh: float
    system_type: str
    roof_area_m2: float
    system_cost: float
    government_rebate: float
    certificate_count: int
    certificate_value: float
    total_incentives: float
    net_cost: float
    self_consumption_savings: float
    feed_in_income: float
    total_annual_benefit: float
    payback_status: str
    payback_years: float | None
    co2_reduction_tonnes: float
    equivalent_trees: int
    energy_price_used: float
    feed_in_rate_used: float
    battery_incentive: str | None = None

    @property
    def payback_display(self) -> str:
        if self.payback_status == PAYBACK_IMMEDIATE:
            return "Immediate – incentives cover the upfront cost"
        if self.payback_status == PAYBACK_YEARS:
            return f"Approx. {self.payback_years:.1f} years"
        return "N/A"

    def display_fields(self) -> dict:
        """The stringified report shown on the results step and sent with the lead."""
        if self.estimated_consumption_kwh is None:
            consumption = "Not provided (standard system size used)"
        else:
            consumption = f"~{int(round_half_up(self.estimated_consumption_kwh)):,} kWh/year"
        return {
            "recommendedSystemSize": f"{self.system_size_kwp:.1f} kWp",
            "estimatedConsumption": consumption,
            "estimatedAnnualProduction": f"~{int(round_half_up(self.annual_production_kwh, 100)):,} kWh/year",
            "requiredRoofArea": f"Approx. {int(round_half_up(self.roof_area_m2))} m²",
            "systemType": self.system_type,
            "estimatedSystemCost": format_currency(self.system_cost),
            "governmentRebate": format_currency(self.government_rebate),
            "certificateCount": f"{self.certificate_count} STCs",
            "certificateValue": format_currency(self.certificate_value),
            "totalIncentives": format_currency(self.total_incentives),
            "netCost": format_currency(self.net_cost),
            "annualSavings": format_currency(self.self_consumption_savings),
            "feedInIncome": format_currency(self.feed_in_income),
            "totalAnnualBenefit": format_currency(self.total_annual_benefit),
            "paybackTime": self.payback_display,
            "co2Reduction": f"Approx. {self.co2_reduction_tonnes:.1f} tonnes/year",
            "equivalentTrees": f"{self.equivalent_trees:,} trees per year",
            "energyPriceUsed": format_rate(self.energy_price_used),
            "feedInRateUsed": format_rate(self.feed_in_rate_used),
            "locationUsed": f"{self.postcode}, {self.jurisdiction} (zone {self.certificate_zone})",
            "batteryIncentive": self.battery_incentive or "N/A",
        }


@dataclass(frozen=True)
class CalculationOutcome:
    report: ResultReport | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def success(self) -> bool:
        return self.report is not None


def _valid_zone(zone) -> bool:
    return isinstance(zone, int) and not isinstance(zone, bool) and zone in VALID_CERTIFICATE_ZONES


def check_location_preconditions(form_data: dict) -> str | None:
    """Returns an error message if location data is missing or unusable, else None."""
    for key in (POSTCODE, JURISDICTION, CERTIFICATE_ZONE, LATITUDE, LONGITUDE):
        if form_data.get(key) in (None, ""):
            return "Your location details are incomplete. Please go back and verify your postcode."
    if not _valid_zone(form_data.get(CERTIFICATE_ZONE)):
        return "Your solar zone could not be determined. Please go back and verify your postcode."
    return None


def estimate_annual_consumption(form_data: dict, profile: dict) -> float | None:
    """
    Annualised bill / energy price. Returns None when there's no usable bill.
    Consumption is estimated with the jurisdiction's default price, not the user's own.
    """
    amount = parse_amount(form_data.get(BILL_AMOUNT))
    frequency = form_data.get(BILL_FREQUENCY)
    if amount is None or not math.isfinite(amount) or amount <= 0:
        return None
    if frequency not in BILLING_FREQUENCY_MULTIPLIERS:
        return None
    annual_bill = amount * BILLING_FREQUENCY_MULTIPLIERS[frequency]
    price = profile.get("default_energy_price") or DEFAULT_ENERGY_PRICE
    return annual_bill / price


def select_system_size(annual_consumption_kwh: float | None) -> float:
    if annual_consumption_kwh is None:
        return DEFAULT_SYSTEM_SIZE_KWP
    return snap_to_system_size(annual_consumption_kwh)


def select_energy_price(form_data: dict, profile: dict) -> float:
    # Priority: user-supplied price > jurisdiction default > global default
    user_price = parse_amount(form_data.get(ENERGY_PRICE))
    if user_price is not None and math.isfinite(user_price) and user_price > 0:
        return user_price
    return profile.get("default_energy_price") or DEFAULT_ENERGY_PRICE


def calculate_certificates(system_size_kwp: float, certificate_zone: int) -> int:
    """STCs = floor(size × deeming years × zone)."""
    if not _valid_zone(certificate_zone):
        raise ValueError(f"Certificate zone must be one of {VALID_CERTIFICATE_ZONES}, got {certificate_zone!r}")
    # round() strips float noise such as 59.39999999 before flooring
    return math.floor(round(system_size_kwp * STC_DEEMING_PERIOD_YEARS * certificate_zone, 6))


def classify_payback(net_cost: float, total_annual_benefit: float):
    """Returns (payback_status, payback_years_or_none)."""
    if net_cost <= 0:
        return PAYBACK_IMMEDIATE, None
    if total_annual_benefit > 0:
        return PAYBACK_YEARS, net_cost / total_annual_benefit
    return PAYBACK_NOT_APPLICABLE, None


def calculate_results(form_data: dict, fetch_production=fetch_annual_production) -> CalculationOutcome:
    """
    Form State -> ResultReport. The only external call is the production estimate;
    any failure aborts before a report exists.
    """

    # 1. Preconditions
    location_error = check_location_preconditions(form_data)
    if location_error:
        calc_logger.warning(f"Calculation aborted: {location_error}")
        return CalculationOutcome(error=location_error, error_kind="location_data")

    postcode = form_data[POSTCODE]
    jurisdiction = form_data[JURISDICTION]
    zone = form_data[CERTIFICATE_ZONE]
    profile = get_incentive_profile(jurisdiction)

    # 2. Consumption -> system size
    consumption_kwh = estimate_annual_consumption(form_data, profile)
    system_size = select_system_size(consumption_kwh)

    # 3. Production estimate
    production = fetch_production(form_data[LATITUDE], form_data[LONGITUDE], system_size)
    if not production.success:
        return CalculationOutcome(error=production.error, error_kind=production.error_kind)
    annual_production = production.ac_annual_kwh
    if annual_production is None or not math.isfinite(annual_production) or annual_production < 0:
        return CalculationOutcome(error="The solar production estimate was not usable. Please try again.",
                                  error_kind="malformed")

    # 4. Cost & incentives
    system_cost = system_size * COST_PER_KWP
    rebate = select_panel_rebate(profile, form_data.get(PROPERTY_TYPE))
    certificate_count = calculate_certificates(system_size, zone)
    certificate_value = certificate_count * STC_PRICE
    total_incentives = rebate + certificate_value
    net_cost = system_cost - total_incentives

    # 5. Savings & feed-in income
    feed_in_rate = select_feed_in_rate(profile)
    energy_price = select_energy_price(form_data, profile)
    exported_kwh = annual_production * EXPORT_SHARE
    self_consumed_kwh = annual_production - exported_kwh
    savings = self_consumed_kwh * energy_price
    feed_in_income = exported_kwh * feed_in_rate
    total_benefit = savings + feed_in_income

    # 6. Payback
    payback_status, payback_years = classify_payback(net_cost, total_benefit)

    # 7. Environmental impact
    co2_tonnes = annual_production * GRID_EMISSION_FACTOR
    trees = int(round_half_up(co2_tonnes / CO2_TONNES_PER_TREE_PER_YEAR))

    wants_battery = form_data.get(BATTERY_INTEREST) in ("yes", "maybe")
    report = ResultReport(
        postcode=postcode,
        jurisdiction=jurisdiction,
        certificate_zone=zone,
        estimated_consumption_kwh=consumption_kwh,
        system_size_kwp=system_size,
        annual_production_kwh=annual_production,
        system_type="Grid-tied with optional battery storage" if wants_battery else "Grid-tied",
        roof_area_m2=system_size * SQ_METERS_PER_KWP,
        system_cost=system_cost,
        government_rebate=rebate,
        certificate_count=certificate_count,
        certificate_value=certificate_value,
        total_incentives=total_incentives,
        net_cost=net_cost,
        self_consumption_savings=savings,
        feed_in_income=feed_in_income,
        total_annual_benefit=total_benefit,
        payback_status=payback_status,
        payback_years=payback_years,
        co2_reduction_tonnes=co2_tonnes,
        equivalent_trees=trees,
        energy_price_used=energy_price,
        feed_in_rate_used=feed_in_rate,
        battery_incentive=describe_battery_incentive(profile) if wants_battery else None,
    )
    calc_logger.info(f"Report ready: {system_size} kWp in {jurisdiction} zone {zone}, payback={payback_status}")
    return CalculationOutcome(report=report)


def build_savings_projection(report: ResultReport, years: int = PROJECTION_YEARS) -> pd.DataFrame:
    """
    Year-by-year cumulative position for the results chart.
    Year 0 is the upfront net cost (positive when incentives exceed the cost).
    """
    year_index = np.arange(0, years + 1)
    cumulative_benefit = year_index * report.total_annual_benefit
    return pd.DataFrame({
        "Year": year_index,
        "Cumulative Benefit ($)": cumulative_benefit,
        "Net Position ($)": cumulative_benefit - report.net_cost,
    })
