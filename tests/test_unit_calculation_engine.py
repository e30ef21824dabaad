import math
import sys
import os
import pytest
from unittest.mock import MagicMock

# --- CONFIGURATION ---
# Add project root to path to allow importing from `sunquote_engine` folder
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.insert(0, project_root)

from sunquote_engine.calculation_engine import (
    PAYBACK_IMMEDIATE, PAYBACK_NOT_APPLICABLE, PAYBACK_YEARS,
    build_savings_projection, calculate_certificates, calculate_results,
    classify_payback, estimate_annual_consumption, select_energy_price, select_system_size
)
from sunquote_engine.incentive_definitions import get_incentive_profile
from sunquote_engine.production_service import ProductionResult


# ============ TEST DATA & FIXTURES ============
@pytest.fixture
def sydney_house():
    """Postcode 2000 already resolved: NSW, zone 3, $300 monthly bill."""
    return {
        "postcode": "2000",
        "jurisdiction": "NSW",
        "certificateZone": 3,
        "lat": -33.8688,
        "lon": 151.2093,
        "propertyType": "house",
        "billAmount": "300",
        "billFrequency": "monthly",
        "batteryInterest": "no",
    }


@pytest.fixture
def melbourne_business():
    """Small quarterly bill in VIC zone 4, business rebate applies."""
    return {
        "postcode": "3000",
        "jurisdiction": "VIC",
        "certificateZone": 4,
        "lat": -37.81,
        "lon": 144.96,
        "propertyType": "business",
        "billAmount": "100",
        "billFrequency": "quarterly",
        "batteryInterest": "yes",
    }


def _production(kwh):
    return MagicMock(return_value=ProductionResult(success=True, ac_annual_kwh=kwh))


# ============ CONSUMPTION & SIZING ============
def test_consumption_from_450_monthly_bill():
    form_data = {"billAmount": 450, "billFrequency": "monthly"}

    nsw = estimate_annual_consumption(form_data, get_incentive_profile("NSW"))
    assert nsw == pytest.approx(450 * 12 / 0.327)
    assert select_system_size(nsw) == 10.0

    national = estimate_annual_consumption(form_data, get_incentive_profile("DEFAULT"))
    assert national == pytest.approx(450 * 12 / 0.30)


@pytest.mark.parametrize("form_data", [
    {},
    {"billAmount": "300"},
    {"billAmount": "0", "billFrequency": "monthly"},
    {"billAmount": "lots", "billFrequency": "monthly"},
    {"billAmount": "300", "billFrequency": "fortnightly"},
])
def test_unusable_bill_gives_no_consumption_and_default_size(form_data):
    consumption = estimate_annual_consumption(form_data, get_incentive_profile("NSW"))
    assert consumption is None
    assert select_system_size(consumption) == 6.6


def test_energy_price_priority():
    nsw = get_incentive_profile("NSW")
    assert select_energy_price({"energyPrice": "0.40"}, nsw) == pytest.approx(0.40)
    assert select_energy_price({"energyPrice": "0"}, nsw) == pytest.approx(0.327)
    assert select_energy_price({"energyPrice": "n/a"}, nsw) == pytest.approx(0.327)
    assert select_energy_price({}, get_incentive_profile("DEFAULT")) == pytest.approx(0.30)


# ============ CERTIFICATES & PAYBACK ============
@pytest.mark.parametrize("size, zone", [(3.3, 1), (5.0, 2), (6.6, 3), (8.0, 4), (10.0, 3), (6.6, 4)])
def test_certificate_count_is_floored(size, zone):
    assert calculate_certificates(size, zone) == math.floor(round(size * 9 * zone, 6))


def test_certificate_examples():
    assert calculate_certificates(10.0, 3) == 270
    assert calculate_certificates(6.6, 3) == 178
    assert calculate_certificates(3.3, 4) == 118


@pytest.mark.parametrize("zone", [0, 5, None, "3", True])
def test_certificate_zone_outside_range_rejected(zone):
    with pytest.raises(ValueError):
        calculate_certificates(6.6, zone)


@pytest.mark.parametrize("net_cost, benefit, expected_status", [
    (0, 1000, PAYBACK_IMMEDIATE),
    (-500, 0, PAYBACK_IMMEDIATE),
    (1005, 0, PAYBACK_NOT_APPLICABLE),
    (1005, -10, PAYBACK_NOT_APPLICABLE),
    (1005, 2569, PAYBACK_YEARS),
])
def test_classify_payback(net_cost, benefit, expected_status):
    status, years = classify_payback(net_cost, benefit)
    assert status == expected_status
    if status == PAYBACK_YEARS:
        assert years == pytest.approx(net_cost / benefit)
    else:
        assert years is None


# ============ FULL CALCULATION ============
def test_end_to_end_sydney_house(sydney_house):
    fetch = _production(14000)

    outcome = calculate_results(sydney_house, fetch_production=fetch)

    assert outcome.success
    fetch.assert_called_once_with(-33.8688, 151.2093, 10.0)
    report = outcome.report
    assert report.estimated_consumption_kwh == pytest.approx(3600 / 0.327)
    assert report.system_size_kwp == 10.0
    assert report.system_cost == pytest.approx(11400)
    assert report.certificate_count == 270
    assert report.certificate_value == pytest.approx(10395)
    assert report.government_rebate == 0
    assert report.net_cost == pytest.approx(1005)
    assert report.self_consumption_savings == pytest.approx(2289)
    assert report.feed_in_income == pytest.approx(280)
    assert report.total_annual_benefit == pytest.approx(2569)
    assert report.payback_status == PAYBACK_YEARS
    assert report.co2_reduction_tonnes == pytest.approx(9.52)
    assert report.equivalent_trees == 433

    fields = report.display_fields()
    assert fields["recommendedSystemSize"] == "10.0 kWp"
    assert fields["estimatedAnnualProduction"] == "~14,000 kWh/year"
    assert fields["requiredRoofArea"] == "Approx. 66 m²"
    assert fields["systemType"] == "Grid-tied"
    assert fields["estimatedSystemCost"] == "$11,400 AUD"
    assert fields["certificateCount"] == "270 STCs"
    assert fields["certificateValue"] == "$10,395 AUD"
    assert fields["totalIncentives"] == "$10,395 AUD"
    assert fields["netCost"] == "$1,005 AUD"
    assert fields["annualSavings"] == "$2,289 AUD"
    assert fields["feedInIncome"] == "$280 AUD"
    assert fields["totalAnnualBenefit"] == "$2,569 AUD"
    assert fields["paybackTime"] == "Approx. 0.4 years"
    assert fields["co2Reduction"] == "Approx. 9.5 tonnes/year"
    assert fields["equivalentTrees"] == "433 trees per year"
    assert fields["energyPriceUsed"] == "$0.327/kWh"
    assert fields["feedInRateUsed"] == "$0.040/kWh"
    assert fields["locationUsed"] == "2000, NSW (zone 3)"
    assert fields["batteryIncentive"] == "N/A"


def test_user_energy_price_changes_savings_not_size(sydney_house):
    sydney_house["energyPrice"] = "0.40"
    report = calculate_results(sydney_house, fetch_production=_production(14000)).report
    assert report.system_size_kwp == 10.0
    assert report.energy_price_used == pytest.approx(0.40)
    assert report.self_consumption_savings == pytest.approx(7000 * 0.40)


def test_business_rebate_and_immediate_payback(melbourne_business):
    report = calculate_results(melbourne_business, fetch_production=_production(4200)).report
    assert report.system_size_kwp == 3.3
    assert report.government_rebate == 3500
    assert report.certificate_count == 118
    assert report.net_cost < 0
    assert report.payback_status == PAYBACK_IMMEDIATE
    fields = report.display_fields()
    assert fields["paybackTime"] == "Immediate – incentives cover the upfront cost"
    assert fields["systemType"] == "Grid-tied with optional battery storage"
    assert fields["batteryIncentive"] == "Interest-free loan up to $8,800"


def test_zero_production_gives_not_applicable_payback(sydney_house):
    report = calculate_results(sydney_house, fetch_production=_production(0)).report
    assert report.payback_status == PAYBACK_NOT_APPLICABLE
    assert report.display_fields()["paybackTime"] == "N/A"


def test_missing_bill_uses_default_size(sydney_house):
    del sydney_house["billAmount"]
    fetch = _production(9000)
    report = calculate_results(sydney_house, fetch_production=fetch).report
    assert report.system_size_kwp == 6.6
    assert report.estimated_consumption_kwh is None
    assert report.display_fields()["estimatedConsumption"].startswith("Not provided")
    fetch.assert_called_once_with(-33.8688, 151.2093, 6.6)


def test_calculation_is_idempotent(sydney_house):
    first = calculate_results(sydney_house, fetch_production=_production(13876.4)).report
    second = calculate_results(sydney_house, fetch_production=_production(13876.4)).report
    assert first == second
    assert first.display_fields() == second.display_fields()


@pytest.mark.parametrize("overrides", [
    {"certificateZone": 0},
    {"certificateZone": None},
    {"certificateZone": 5},
    {"certificateZone": "3"},
    {"jurisdiction": None},
    {"lat": None},
    {"postcode": ""},
])
def test_missing_location_data_aborts_before_production_call(sydney_house, overrides):
    sydney_house.update(overrides)
    fetch = _production(14000)

    outcome = calculate_results(sydney_house, fetch_production=fetch)

    assert not outcome.success
    assert outcome.report is None
    assert outcome.error_kind == "location_data"
    fetch.assert_not_called()


def test_production_failure_aborts_without_report(sydney_house):
    fetch = MagicMock(return_value=ProductionResult(success=False, error="PVWatts down", error_kind="network"))
    outcome = calculate_results(sydney_house, fetch_production=fetch)
    assert not outcome.success
    assert outcome.report is None
    assert outcome.error == "PVWatts down"
    assert outcome.error_kind == "network"


def test_unusable_production_value_is_malformed(sydney_house):
    outcome = calculate_results(sydney_house, fetch_production=_production(float("nan")))
    assert outcome.error_kind == "malformed"


# ============ SAVINGS PROJECTION ============
def test_savings_projection(sydney_house):
    report = calculate_results(sydney_house, fetch_production=_production(14000)).report
    df = build_savings_projection(report)
    assert len(df) == 26
    assert df["Net Position ($)"].iloc[0] == pytest.approx(-1005)
    assert df["Cumulative Benefit ($)"].iloc[25] == pytest.approx(25 * 2569)
    assert df["Net Position ($)"].iloc[1] > 0
