"""Tests for sonar_export/client.py"""

import base64
import warnings

import pytest
import requests

from sonar_export.client import (
    AuthenticationError,
    AuthorizationError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    SonarClient,
    SonarClientError,
)
from sonar_export.errors import DataShapeError

BASE = "https://sonar.example.com"
SEARCH = f"{BASE}/api/issues/search"
PROJECT = "proj"


@pytest.fixture
def client() -> SonarClient:
    return SonarClient(url=BASE, token="squ_test")


def _issue(n: int) -> dict:
    return {
        "key": f"i{n}", "type": "CODE_SMELL", "rule": "java:S1234",
        "severity": "MAJOR", "component": f"{PROJECT}:src/Foo.java",
        "textRange": {"startLine": n, "endLine": n},
        "message": "Some issue", "status": "OPEN",
        "creationDate": "2026-02-23T10:00:00+0000",
        "updateDate": "2026-02-24T10:00:00+0000", "project": PROJECT,
    }


def _page(start: int, count: int, total: int | None = None) -> dict:
    body = {"issues": [_issue(n) for n in range(start, start + count)]}
    if total is not None:
        body["total"] = total
    return body


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def test_trailing_slash_is_stripped():
    assert SonarClient(url=f"{BASE}/", token="t").base_url == BASE


@pytest.mark.parametrize("url, token", [("", "t"), ("   ", "t"), (BASE, "")])
def test_empty_url_or_token_rejected(url, token):
    with pytest.raises(ValueError):
        SonarClient(url=url, token=token)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def test_fetch_sends_basic_auth_with_empty_password(client, requests_mock):
    adapter = requests_mock.get(SEARCH, json={"issues": [], "total": 0})
    client.fetch_issues(PROJECT)
    expected = "Basic " + base64.b64encode(b"squ_test:").decode("ascii")
    assert adapter.last_request.headers["Authorization"] == expected


# ---------------------------------------------------------------------------
# fetch_issues() — HTTP error codes
# ---------------------------------------------------------------------------

def test_fetch_401_raises_authentication_error(client, requests_mock):
    requests_mock.get(SEARCH, status_code=401)
    with pytest.raises(AuthenticationError):
        client.fetch_issues(PROJECT)


def test_fetch_403_raises_authorization_error(client, requests_mock):
    requests_mock.get(SEARCH, status_code=403)
    with pytest.raises(AuthorizationError, match="Browse"):
        client.fetch_issues(PROJECT)


def test_fetch_404_raises_not_found_error(client, requests_mock):
    requests_mock.get(SEARCH, status_code=404)
    with pytest.raises(NotFoundError):
        client.fetch_issues(PROJECT)


def test_fetch_500_raises_sonar_client_error(client, requests_mock):
    requests_mock.get(SEARCH, status_code=500, text="Internal Server Error")
    with pytest.raises(SonarClientError, match="500"):
        client.fetch_issues(PROJECT)


def test_fetch_non_json_body_raises_malformed(client, requests_mock):
    requests_mock.get(SEARCH, text="<html>proxy login</html>")
    with pytest.raises(MalformedResponseError, match="not valid JSON"):
        client.fetch_issues(PROJECT)


def test_fetch_json_array_body_raises_malformed(client, requests_mock):
    requests_mock.get(SEARCH, json=[1, 2, 3])
    with pytest.raises(MalformedResponseError, match="not a JSON object"):
        client.fetch_issues(PROJECT)


# ---------------------------------------------------------------------------
# fetch_issues() — network errors
# ---------------------------------------------------------------------------

def test_fetch_timeout_raises_network_error(client, requests_mock):
    requests_mock.get(SEARCH, exc=requests.exceptions.Timeout)
    with pytest.raises(NetworkError, match="timed out"):
        client.fetch_issues(PROJECT)


def test_fetch_connection_error_raises_network_error(client, requests_mock):
    requests_mock.get(SEARCH, exc=requests.exceptions.ConnectionError)
    with pytest.raises(NetworkError, match="Unable to reach"):
        client.fetch_issues(PROJECT)


def test_fetch_ssl_error_raises_network_error(client, requests_mock):
    requests_mock.get(SEARCH, exc=requests.exceptions.SSLError)
    with pytest.raises(NetworkError, match="TLS"):
        client.fetch_issues(PROJECT)


# ---------------------------------------------------------------------------
# fetch_issues() — request shape
# ---------------------------------------------------------------------------

def test_fetch_sends_component_page_and_size(client, requests_mock):
    adapter = requests_mock.get(SEARCH, json=_page(1, 1, total=1))
    client.fetch_issues(PROJECT)

    qs = adapter.last_request.qs
    assert qs["componentkeys"] == [PROJECT]
    assert qs["p"] == ["1"]
    assert qs["ps"] == ["500"]


def test_fetch_rejects_empty_project_key(client, requests_mock):
    adapter = requests_mock.get(SEARCH, json=_page(1, 0))
    with pytest.raises(ValueError):
        client.fetch_issues("")
    assert adapter.call_count == 0


# ---------------------------------------------------------------------------
# fetch_issues() — termination
# ---------------------------------------------------------------------------

def test_fetch_empty_first_page(client, requests_mock):
    adapter = requests_mock.get(SEARCH, json=_page(1, 0, total=0))
    assert client.fetch_issues(PROJECT) == []
    assert adapter.call_count == 1


def test_fetch_short_page_stops_without_extra_request(requests_mock):
    client = SonarClient(BASE, "tok", page_size=3)
    adapter = requests_mock.get(SEARCH, [
        {"json": _page(1, 3)},
        {"json": _page(4, 2)},
        {"json": _page(6, 3)},
    ])
    issues = client.fetch_issues(PROJECT)

    assert [i.key for i in issues] == ["i1", "i2", "i3", "i4", "i5"]
    assert adapter.call_count == 2


def test_fetch_stops_when_total_reached(requests_mock):
    client = SonarClient(BASE, "tok", page_size=2)
    adapter = requests_mock.get(SEARCH, [
        {"json": _page(1, 2, total=4)},
        {"json": _page(3, 2, total=4)},
        {"json": _page(5, 2, total=4)},
    ])
    issues = client.fetch_issues(PROJECT)

    assert len(issues) == 4
    assert adapter.call_count == 2
    assert [r.qs["p"] for r in adapter.request_history] == [["1"], ["2"]]


def test_fetch_reads_total_from_paging(requests_mock):
    client = SonarClient(BASE, "tok", page_size=2)
    first = _page(1, 2)
    first["paging"] = {"pageIndex": 1, "pageSize": 2, "total": 2}
    adapter = requests_mock.get(SEARCH, [{"json": first}, {"json": _page(3, 2)}])

    assert len(client.fetch_issues(PROJECT)) == 2
    assert adapter.call_count == 1


def test_fetch_stops_on_empty_page(requests_mock):
    client = SonarClient(BASE, "tok", page_size=2)
    adapter = requests_mock.get(SEARCH, [
        {"json": _page(1, 2)},
        {"json": _page(3, 0)},
    ])
    assert len(client.fetch_issues(PROJECT)) == 2
    assert adapter.call_count == 2


def test_fetch_multiple_full_pages_keep_order(requests_mock):
    responses = [
        {"json": _page(1, 500, total=750)},
        {"json": _page(501, 250, total=750)},
    ]
    requests_mock.get(SEARCH, responses)
    issues = SonarClient(BASE, "tok").fetch_issues(PROJECT)

    assert len(issues) == 750
    assert issues[0].key == "i1"
    assert issues[-1].key == "i750"


# ---------------------------------------------------------------------------
# fetch_issues() — page ceiling
# ---------------------------------------------------------------------------

def test_fetch_ceiling_with_endless_full_pages(requests_mock):
    client = SonarClient(BASE, "tok", page_size=2, max_pages=3)
    adapter = requests_mock.get(SEARCH, json=_page(1, 2))

    issues = client.fetch_issues(PROJECT)

    assert adapter.call_count == 3
    assert len(issues) == 6


def test_fetch_default_ceiling_caps_at_10000(requests_mock):
    adapter = requests_mock.get(SEARCH, json=_page(1, 500, total=50_000))
    with warnings.catch_warnings(record=True):
        warnings.simplefilter("always")
        issues = SonarClient(BASE, "tok").fetch_issues(PROJECT)

    assert adapter.call_count == 20
    assert len(issues) == 10_000


def test_fetch_warns_when_ceiling_truncates(requests_mock):
    client = SonarClient(BASE, "tok", page_size=2, max_pages=2)
    requests_mock.get(SEARCH, json=_page(1, 2, total=10))

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        issues = client.fetch_issues(PROJECT)

    assert len(issues) == 4
    assert any("reports 10 issues" in str(w.message) for w in caught)


def test_fetch_no_warning_when_complete(requests_mock):
    client = SonarClient(BASE, "tok", page_size=2)
    requests_mock.get(SEARCH, json=_page(1, 1, total=1))

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        client.fetch_issues(PROJECT)

    assert not [w for w in caught if issubclass(w.category, UserWarning)]


# ---------------------------------------------------------------------------
# fetch_issues() — failures discard everything
# ---------------------------------------------------------------------------

def test_fetch_failure_on_later_page_propagates(requests_mock):
    client = SonarClient(BASE, "tok", page_size=2)
    requests_mock.get(SEARCH, [
        {"json": _page(1, 2)},
        {"status_code": 502, "text": "Bad Gateway"},
    ])
    with pytest.raises(SonarClientError, match="502"):
        client.fetch_issues(PROJECT)


def test_fetch_missing_issues_list_is_malformed(client, requests_mock):
    requests_mock.get(SEARCH, json={"total": 3})
    with pytest.raises(MalformedResponseError, match="'issues'"):
        client.fetch_issues(PROJECT)


def test_fetch_issue_without_text_range_fails_fast(client, requests_mock):
    broken = _issue(1)
    del broken["textRange"]
    requests_mock.get(SEARCH, json={"issues": [broken], "total": 1})
    with pytest.raises(DataShapeError, match="i1"):
        client.fetch_issues(PROJECT)
