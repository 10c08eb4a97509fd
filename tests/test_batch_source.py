"""
Tests for RemoteBatchSource with requests mocked out.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import make_batch
from remote.batch_source import RemoteBatchSource

URL = "https://example.com/batches/latest.json"


def response(payload=None, status_error=None, json_error=None):
    mock = MagicMock()
    if status_error is not None:
        mock.raise_for_status.side_effect = status_error
    if json_error is not None:
        mock.json.side_effect = json_error
    else:
        mock.json.return_value = payload
    return mock


@patch("remote.batch_source.requests.get")
def test_fetch_batch_document(mock_get):
    mock_get.return_value = response(make_batch("batch-1"))

    result = RemoteBatchSource(URL, timeout=5).fetch_latest_batch()

    assert result.success
    assert result.payload["id"] == "batch-1"
    assert result.payload["sourceUrl"] == URL
    mock_get.assert_called_once_with(URL, timeout=5, headers={"Accept": "application/json"})


@patch("remote.batch_source.requests.get")
def test_fetch_follows_manifest(mock_get):
    mock_get.side_effect = [
        response({"latestBatchUrl": "2026-10-15.json"}),
        response(make_batch("batch-2026-10-15")),
    ]

    result = RemoteBatchSource(URL).fetch_latest_batch()

    assert result.success
    assert result.url == "https://example.com/batches/2026-10-15.json"
    assert result.payload["id"] == "batch-2026-10-15"
    assert mock_get.call_count == 2


@pytest.mark.parametrize("error, expected", [
    (requests.exceptions.ConnectionError("refused"), "Cannot connect"),
    (requests.exceptions.Timeout("slow"), "timed out"),
    (requests.exceptions.TooManyRedirects("loop"), "Request failed"),
])
@patch("remote.batch_source.requests.get")
def test_transport_errors_returned(mock_get, error, expected):
    mock_get.side_effect = error

    result = RemoteBatchSource(URL).fetch_latest_batch()

    assert not result.success
    assert result.payload is None
    assert expected in result.error


@patch("remote.batch_source.requests.get")
def test_http_error_returned(mock_get):
    mock_get.return_value = response(status_error=requests.exceptions.HTTPError("404 Not Found"))

    result = RemoteBatchSource(URL).fetch_latest_batch()

    assert not result.success
    assert "HTTP error" in result.error


@patch("remote.batch_source.requests.get")
def test_invalid_json_returned(mock_get):
    mock_get.return_value = response(json_error=ValueError("Expecting value"))

    result = RemoteBatchSource(URL).fetch_latest_batch()

    assert not result.success
    assert "Invalid JSON" in result.error


@patch("remote.batch_source.requests.get")
def test_non_batch_document_returned(mock_get):
    mock_get.return_value = response({"hello": "world"})

    result = RemoteBatchSource(URL).fetch_latest_batch()

    assert not result.success
    assert "not a batch document" in result.error


@patch("remote.batch_source.requests.get")
def test_no_url_configured(mock_get):
    result = RemoteBatchSource("").fetch_latest_batch()

    assert not result.success
    assert "ALGEBRIX_SYNC_URL" in result.error
    mock_get.assert_not_called()
