import sys
import os
import pytest
import requests
import streamlit as st
from unittest.mock import MagicMock, patch

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.insert(0, project_root)

from sunquote_engine.production_service import (
    NREL_API_KEY_HOLDER, PVWATTS_API_ENDPOINT_V8, fetch_annual_production
)

PVWATTS_OK = {"inputs": {}, "errors": [], "warnings": [], "outputs": {"ac_annual": 14012.6, "ac_monthly": []}}


def _mock_response(json_data=None, status_code=200, json_error=None):
    response = MagicMock()
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture(autouse=True)
def clear_streamlit_cache():
    """A fixture that automatically clears the Streamlit cache before each test."""
    st.cache_data.clear()
    yield


@pytest.fixture(autouse=True)
def nrel_key():
    NREL_API_KEY_HOLDER["key"] = "test-key"
    yield
    NREL_API_KEY_HOLDER["key"] = None


@patch('requests.get')
def test_fetch_annual_production_success(mock_get):
    mock_get.return_value = _mock_response(PVWATTS_OK)

    result = fetch_annual_production(-33.87, 151.21, 6.6)

    assert result.success
    assert result.ac_annual_kwh == pytest.approx(14012.6)
    args, kwargs = mock_get.call_args
    assert args[0] == PVWATTS_API_ENDPOINT_V8
    params = kwargs["params"]
    assert params["api_key"] == "test-key"
    assert params["system_capacity"] == 6.6
    # North-facing array for the southern hemisphere
    assert params["azimuth"] == 0
    assert params["tilt"] == 20
    assert params["array_type"] == 1
    assert params["module_type"] == 0
    assert params["losses"] == 14


@patch('requests.get')
def test_missing_api_key_makes_no_request(mock_get):
    NREL_API_KEY_HOLDER["key"] = None
    result = fetch_annual_production(-33.87, 151.21, 6.6)
    assert not result.success
    assert result.error_kind == "status"
    mock_get.assert_not_called()


@pytest.mark.parametrize("lat, lon, size", [
    (None, 151.21, 6.6),
    (-33.87, None, 6.6),
    (-33.87, 151.21, 0),
    (-33.87, 151.21, -1),
])
@patch('requests.get')
def test_invalid_inputs_are_malformed(mock_get, lat, lon, size):
    result = fetch_annual_production(lat, lon, size)
    assert result.error_kind == "malformed"
    mock_get.assert_not_called()


@pytest.mark.parametrize("mock_kwargs, side_effect, expected_kind", [
    ({}, requests.exceptions.ConnectionError("down"), "network"),
    ({}, requests.exceptions.Timeout("slow"), "network"),
    ({}, requests.exceptions.InvalidSchema("no adapter"), "network"),
    ({}, requests.exceptions.InvalidURL("bad url"), "network"),
    ({"status_code": 403}, None, "status"),
    ({"json_data": {"errors": ["system_capacity must be between 0.05 and 500000"]}}, None, "status"),
    ({"json_error": requests.exceptions.JSONDecodeError("Expecting value", "not json", 0)}, None, "malformed"),
    ({"json_data": {"outputs": {}}}, None, "malformed"),
    ({"json_data": {"outputs": {"ac_annual": "lots"}}}, None, "malformed"),
])
@patch('requests.get')
def test_failure_kinds_are_distinguished(mock_get, mock_kwargs, side_effect, expected_kind):
    if side_effect is not None:
        mock_get.side_effect = side_effect
    else:
        mock_get.return_value = _mock_response(**mock_kwargs)

    result = fetch_annual_production(-33.87, 151.21, 6.6)

    assert not result.success
    assert result.error_kind == expected_kind
    assert result.error


@patch('requests.get')
def test_no_retries_and_failures_not_cached(mock_get):
    mock_get.side_effect = [requests.exceptions.Timeout("slow"), _mock_response(PVWATTS_OK)]
    assert not fetch_annual_production(-33.87, 151.21, 6.6).success
    assert mock_get.call_count == 1
    assert fetch_annual_production(-33.87, 151.21, 6.6).success
    assert mock_get.call_count == 2
