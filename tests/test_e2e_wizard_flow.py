from streamlit.testing.v1 import AppTest
import streamlit as st
import pytest
from unittest.mock import MagicMock, patch
import sys, os

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.insert(0, project_root)

from sunquote_engine.calculation_engine import calculate_results
from sunquote_engine.production_service import ProductionResult
from sunquote_engine.step_catalog import step_index
from sunquote_engine.wizard import WizardSession

APP_PATH = os.path.join(project_root, "sunquote_app.py")

NOMINATIM_SYDNEY = [{
    "display_name": "Sydney, New South Wales, 2000, Australia",
    "lat": "-33.8688",
    "lon": "151.2093",
    "address": {"postcode": "2000", "state": "New South Wales"},
}]


@pytest.fixture(autouse=True)
def clear_streamlit_cache():
    """A fixture that automatically clears the Streamlit cache before each test."""
    st.cache_data.clear()
    yield


def test_intro_screen_renders():
    at = AppTest.from_file(APP_PATH).run()
    assert not at.exception
    assert at.title[0].value == "Calculate Your Solar Potential in 60 Seconds"
    assert at.button(key="nav_start") is not None


@patch('requests.get')
def test_postcode_step_resolves_and_advances(mock_get):
    response = MagicMock(status_code=200)
    response.json.return_value = NOMINATIM_SYDNEY
    mock_get.return_value = response

    at = AppTest.from_file(APP_PATH).run()
    at.button(key="nav_start").click().run()
    assert at.title[0].value == "Step 1 – Location"
    # Nothing entered yet: the advance affordance is disabled
    assert at.button(key="nav_next").disabled

    at.text_input(key="wizard_postcode").input("2000").run()
    assert not at.button(key="nav_next").disabled

    at.button(key="nav_next").click().run()

    assert not at.exception
    assert at.title[0].value == "Step 2 – Ownership"
    session = at.session_state["wizard_session"]
    assert session.form_data["jurisdiction"] == "NSW"
    assert session.form_data["certificateZone"] == 3


@patch('requests.get')
def test_unresolvable_postcode_shows_retry_error(mock_get):
    response = MagicMock(status_code=200)
    response.json.return_value = []
    mock_get.return_value = response

    at = AppTest.from_file(APP_PATH).run()
    at.button(key="nav_start").click().run()
    at.text_input(key="wizard_postcode").input("2999").run()
    at.button(key="nav_next").click().run()

    assert at.title[0].value == "Step 1 – Location"
    assert "couldn't find postcode 2999" in at.error[0].value


def _free_text_address_app():
    import streamlit as st
    from sunquote_engine.step_catalog import StepDefinition
    from sunquote_engine.ui_screens import render_wizard
    from sunquote_engine.wizard import WizardMachine, WizardSession

    steps = (
        StepDefinition(id="intro", type="intro", title="Intro"),
        StepDefinition(id="street", type="address", title="Street Address", free_text=True),
        StepDefinition(id="lead", type="lead", title="Your Details"),
    )
    if "wizard_session" not in st.session_state:
        st.session_state.wizard_session = WizardSession(current_step_index=1)
    render_wizard(WizardMachine(st.session_state.wizard_session, steps=steps))


@patch('requests.get')
def test_address_suggestions_appear_after_typing(mock_get):
    response = MagicMock(status_code=200)
    response.json.return_value = NOMINATIM_SYDNEY
    mock_get.return_value = response

    at = AppTest.from_function(_free_text_address_app).run()
    assert len(at.selectbox) == 0

    # One interaction only: no extra rerun is needed for the list to show
    at.text_input(key="wizard_street").input("1 George Street").run()

    assert not at.exception
    assert len(at.selectbox) == 1
    mock_get.assert_called_once()
    assert mock_get.call_args.kwargs["params"]["q"] == "1 George Street"

    at.selectbox(key="address_suggestion").select(0).run()
    session = at.session_state["wizard_session"]
    assert session.form_data["street"] == NOMINATIM_SYDNEY[0]["display_name"]


def test_results_screen_shows_report():
    form_data = {
        "postcode": "2000", "jurisdiction": "NSW", "certificateZone": 3,
        "lat": -33.8688, "lon": 151.2093, "propertyType": "house",
        "billAmount": "300", "billFrequency": "monthly", "batteryInterest": "yes",
        "emailAddress": "jo@example.com", "consent": True,
    }
    fetch = MagicMock(return_value=ProductionResult(success=True, ac_annual_kwh=14000))
    report = calculate_results(form_data, fetch_production=fetch).report

    at = AppTest.from_file(APP_PATH).run()
    at.session_state["wizard_session"] = WizardSession(
        current_step_index=step_index("results"), form_data=form_data, report=report
    )
    at.run()

    assert not at.exception
    metrics = {m.label: m.value for m in at.metric}
    assert metrics["Recommended Size"] == "10.0 kWp"
    assert metrics["Net Cost"] == "$1,005 AUD"
    assert metrics["Payback"] == "Approx. 0.4 years"

    at.button(key="nav_next").click().run()
    assert at.session_state["wizard_session"].current_step_index == step_index("thankyou")
