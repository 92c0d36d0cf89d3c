import pytest
import requests

from finboard_proxy.proxy.errors import (
    FetchError,
    InvalidInput,
    NetworkFailure,
    ProxyFailure,
    UpstreamHTTPError,
    describe_fetch_error,
)

URL = "https://api.example.com/"


def network_failure(cause):
    try:
        raise NetworkFailure(URL, cause) from cause
    except NetworkFailure as e:
        return e


def test_read_timeout_is_request_timed_out():
    assert describe_fetch_error(network_failure(requests.exceptions.ReadTimeout("x"))) == "Request timed out"


def test_connect_timeout_wins_over_generic_timeout():
    error = network_failure(requests.exceptions.ConnectTimeout("x"))
    assert describe_fetch_error(error) == "Connection timed out"


def test_nested_connection_reset_is_detected():
    inner = ConnectionResetError(104, "peer went away")
    outer = requests.exceptions.ConnectionError(inner)
    assert describe_fetch_error(network_failure(outer)) == "Connection reset - API may be rate limiting"


def test_econnreset_text_is_detected():
    assert describe_fetch_error(FetchError("socket hang up: ECONNRESET")) == (
        "Connection reset - API may be rate limiting"
    )


def test_timeout_text_maps_to_connection_timed_out():
    assert describe_fetch_error(FetchError("UND_ERR_CONNECT_TIMEOUT")) == "Connection timed out"


def test_other_errors_pass_their_text_through():
    error = UpstreamHTTPError(URL, 502, "Bad Gateway")
    assert describe_fetch_error(error) == "API returned status 502: Bad Gateway"


@pytest.mark.parametrize(("error", "status"), [(InvalidInput("URL is required"), 400), (ProxyFailure("boom"), 500)])
def test_proxy_errors_render_as_json_bodies(error, status):
    assert error.status_code == status
    assert error.to_dict() == {"error": error.message}


def test_error_without_text_gets_generic_message():
    assert describe_fetch_error(FetchError("")) == "Failed to fetch data"


def test_lowercase_timeout_text_maps_but_status_reason_does_not():
    assert describe_fetch_error(FetchError("socket timeout while reading")) == "Connection timed out"
    assert describe_fetch_error(UpstreamHTTPError(URL, 504, "Gateway timeout")) == (
        "API returned status 504: Gateway timeout"
    )
