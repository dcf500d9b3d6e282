"""Tests for GitHub API client behavior with mocked HTTP."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from leadtime.config import Config
from leadtime.errors import DetailFetchError, MalformedDataError, UpstreamError
from leadtime.github_client import GitHubClient
from leadtime.models import RepositoryConfig

REPOSITORY = RepositoryConfig(owner="octo", name="demo", base_branch="main")


def _build_client(page_size: int = 100) -> GitHubClient:
    config = Config(
        token="gh-token",
        repositories=(REPOSITORY,),
        checkpoint_path="checkpoint.json",
        page_size=page_size,
    )
    return GitHubClient(config=config)


def _response(status_code: int, payload=None, links: dict | None = None, json_error: bool = False):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.reason = "Forbidden" if status_code == 403 else "OK"
    response.links = links or {}
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


def _pr_item(number: int, merged_at: str | None) -> dict:
    return {
        "url": f"https://api.github.com/repos/octo/demo/pulls/{number}",
        "merged_at": merged_at,
        "_links": {"commits": {"href": f"https://api.github.com/repos/octo/demo/pulls/{number}/commits"}},
    }


def test_session_sends_token_authorization_header():
    """Verify requests are authenticated with the configured token."""
    client = _build_client()

    assert client._session.headers["Authorization"] == "token gh-token"


def test_pull_requests_url_requests_closed_prs_sorted_by_update():
    """Verify the first page URL filters by base branch and sorts most recent first."""
    client = _build_client(page_size=50)

    url = client.pull_requests_url(REPOSITORY)

    assert url == (
        "https://api.github.com/repos/octo/demo/pulls"
        "?state=closed&base=main&sort=updated&direction=desc&per_page=50"
    )


def test_get_pull_request_page_parses_items_and_next_link():
    """Verify page parsing extracts merge times, commit links and the next page URL."""
    client = _build_client()
    payload = [_pr_item(1, "2024-01-10T12:00:00Z"), _pr_item(2, None)]
    links = {"next": {"url": "https://api.github.com/next", "rel": "next"}}
    client._session.get = Mock(return_value=_response(200, payload, links=links))

    page = client.get_pull_request_page("https://api.github.com/first")

    assert page.next_url == "https://api.github.com/next"
    assert len(page.pull_requests) == 2
    assert page.pull_requests[0].merged_at == datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
    assert page.pull_requests[0].commits_url.endswith("/pulls/1/commits")
    assert page.pull_requests[1].merged_at is None


def test_get_pull_request_page_without_link_header_has_no_next_url():
    """Verify a missing pagination header ends pagination."""
    client = _build_client()
    client._session.get = Mock(return_value=_response(200, []))

    page = client.get_pull_request_page("https://api.github.com/first")

    assert page.pull_requests == []
    assert page.next_url is None


def test_get_pull_request_page_non_success_raises_upstream_error():
    """Verify non-success statuses are reported as UpstreamError without retrying."""
    client = _build_client()
    client._session.get = Mock(return_value=_response(403, {"message": "rate limited"}))

    with pytest.raises(UpstreamError, match="403"):
        client.get_pull_request_page("https://api.github.com/first")

    assert client._session.get.call_count == 1


def test_get_pull_request_page_transport_error_raises_upstream_error():
    """Verify connection failures are wrapped as UpstreamError."""
    client = _build_client()
    client._session.get = Mock(side_effect=requests.ConnectionError("boom"))

    with pytest.raises(UpstreamError):
        client.get_pull_request_page("https://api.github.com/first")


@pytest.mark.parametrize("response", [_response(200, {"message": "x"}), _response(200, json_error=True)])
def test_get_pull_request_page_unexpected_payload_raises_malformed_data_error(response):
    """Verify non-list or invalid JSON bodies raise MalformedDataError."""
    client = _build_client()
    client._session.get = Mock(return_value=response)

    with pytest.raises(MalformedDataError):
        client.get_pull_request_page("https://api.github.com/first")


def test_list_commits_returns_committer_dates_in_response_order():
    """Verify commit parsing keeps upstream order and skips entries without a date."""
    client = _build_client()
    payload = [
        {"commit": {"committer": {"date": "2024-01-08T12:00:00Z"}}},
        {"commit": {"committer": {}}},
        {"commit": {"committer": {"date": "2024-01-09T12:00:00Z"}}},
    ]
    client._session.get = Mock(return_value=_response(200, payload))

    commits = client.list_commits("https://api.github.com/commits")

    assert [commit.committer_date.day for commit in commits] == [8, 9]


def test_list_commits_non_success_raises_detail_fetch_error():
    """Verify commit list failures are reported as DetailFetchError."""
    client = _build_client()
    client._session.get = Mock(return_value=_response(500))

    with pytest.raises(DetailFetchError):
        client.list_commits("https://api.github.com/commits")


def test_fetch_rate_limit_parses_core_resource():
    """Verify the remaining core quota, limit and reset time are parsed."""
    client = _build_client()
    payload = {"resources": {"core": {"remaining": 4999, "limit": 5000, "reset": 1704888000}}}
    client._session.get = Mock(return_value=_response(200, payload))

    status = client.fetch_rate_limit()

    assert status.remaining == 4999
    assert status.limit == 5000
    assert status.reset == datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
    assert client._session.get.call_args.args[0] == "https://api.github.com/rate_limit"


def test_fetch_rate_limit_non_success_raises_upstream_error():
    """Verify quota endpoint failures raise UpstreamError."""
    client = _build_client()
    client._session.get = Mock(return_value=_response(401))

    with pytest.raises(UpstreamError):
        client.fetch_rate_limit()


def test_fetch_rate_limit_missing_remaining_raises_malformed_data_error():
    """Verify a quota payload without a remaining count is rejected."""
    client = _build_client()
    client._session.get = Mock(return_value=_response(200, {"resources": {}}))

    with pytest.raises(MalformedDataError):
        client.fetch_rate_limit()


def test_get_pull_request_page_skips_items_with_malformed_fields():
    """Verify unparseable merge timestamps and non-object items are skipped, not raised."""
    client = _build_client()
    payload = [
        _pr_item(1, "not-a-date"),
        _pr_item(2, 1704888000),
        "garbage",
        None,
        _pr_item(3, "2024-01-10T12:00:00Z"),
    ]
    client._session.get = Mock(return_value=_response(200, payload))

    page = client.get_pull_request_page("https://api.github.com/first")

    assert [pr.url for pr in page.pull_requests] == ["https://api.github.com/repos/octo/demo/pulls/3"]


def test_get_pull_request_page_ignores_non_string_commits_link():
    """Verify a commits link of the wrong type leaves the pull request without one."""
    client = _build_client()
    item = {"url": "pr-1", "merged_at": "2024-01-10T12:00:00Z", "_links": "oops", "commits_url": 7}
    client._session.get = Mock(return_value=_response(200, [item]))

    page = client.get_pull_request_page("https://api.github.com/first")

    assert page.pull_requests[0].commits_url is None


@pytest.mark.parametrize(
    "payload",
    [
        ["garbage"],
        [{"commit": {"committer": {"date": "yesterday"}}}],
        [{"commit": {"committer": {"date": 1704888000}}}],
        {"message": "not a list"},
    ],
)
def test_list_commits_malformed_payload_raises_malformed_data_error(payload):
    """Verify malformed commit entries and committer dates surface as MalformedDataError."""
    client = _build_client()
    client._session.get = Mock(return_value=_response(200, payload))

    with pytest.raises(MalformedDataError):
        client.list_commits("https://api.github.com/commits")


@pytest.mark.parametrize(
    "payload",
    [
        {"resources": "unavailable"},
        {"resources": {"core": ["remaining"]}},
        {"resources": {"core": {"remaining": "lots", "limit": 5000}}},
        {"resources": {"core": {"remaining": 10, "limit": None}}},
        {"resources": {"core": {"remaining": 10, "limit": 5000, "reset": "soon"}}},
        {"resources": {"core": {"remaining": 10, "limit": 5000, "reset": 10**20}}},
        ["not", "an", "object"],
    ],
)
def test_fetch_rate_limit_malformed_payload_raises_malformed_data_error(payload):
    """Verify unusable quota payloads surface as MalformedDataError, never untyped errors."""
    client = _build_client()
    client._session.get = Mock(return_value=_response(200, payload))

    with pytest.raises(MalformedDataError):
        client.fetch_rate_limit()


def test_fetch_rate_limit_falls_back_to_legacy_rate_field():
    """Verify the top-level ``rate`` object is read when ``resources`` is absent."""
    client = _build_client()
    client._session.get = Mock(return_value=_response(200, {"rate": {"remaining": 42, "limit": 60}}))

    status = client.fetch_rate_limit()

    assert (status.remaining, status.limit, status.reset) == (42, 60, None)
