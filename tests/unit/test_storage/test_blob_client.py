# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for single-blob PUT/GET."""
from __future__ import annotations

import pytest
import requests

from fakes.fake_http import FakeResponse, FakeSession
from vmbootstrap.storage.blob_client import BlobClient, normalize_blob_path
from vmbootstrap.storage.exceptions import BlobTransferError
from vmbootstrap.storage.signer import RequestSigner

DATE = "Tue, 02 Jan 2024 03:04:05 GMT"


def _client(session):
    return BlobClient(session=session, clock=lambda: DATE)


@pytest.mark.unit
class TestBlobPaths:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("/a/b.txt", "a/b.txt"),
            ("a/b.txt", "a/b.txt"),
            ("\\a\\b.txt", "a\\b.txt"),
            ("//a/b.txt", "/a/b.txt"),
        ],
    )
    def test_single_leading_separator_stripped(self, raw, expected):
        assert normalize_blob_path(raw) == expected

    def test_url_built_from_account_and_domain(self, credential):
        client = BlobClient(storage_domain="blob.example.net")
        assert client.blob_url(credential, "/a/b.txt") == "https://acct.blob.example.net/a/b.txt"

    def test_url_quotes_unsafe_characters(self, credential):
        client = BlobClient()
        assert client.blob_url(credential, "assets/my log.txt") == "https://acct.blob.core.windows.net/assets/my%20log.txt"


@pytest.mark.unit
class TestUpload:
    def test_put_with_signed_headers(self, credential):
        session = FakeSession([FakeResponse(201)])
        _client(session).upload(credential, "/a/b.txt", b"hello")

        call = session.calls[0]
        assert call["method"] == "PUT"
        assert call["url"] == "https://acct.blob.core.windows.net/a/b.txt"
        assert call["data"] == b"hello"
        headers = call["headers"]
        assert headers["x-ms-blob-type"] == "BlockBlob"
        assert headers["x-ms-date"] == DATE
        assert headers["x-ms-version"] == "2015-02-21"
        expected = RequestSigner.sign(
            credential,
            "PUT",
            call["url"],
            {"x-ms-version": "2015-02-21", "x-ms-date": DATE, "x-ms-blob-type": "BlockBlob"},
        )
        assert headers["Authorization"] == expected

    def test_upload_from_file(self, credential, tmp_path):
        f = tmp_path / "x.log"
        f.write_bytes(b"log line\n")
        session = FakeSession([FakeResponse(201)])
        _client(session).upload(credential, "assets/logs/x.log", f)
        assert session.calls[0]["data"] == b"log line\n"

    def test_non_2xx_is_error(self, credential):
        session = FakeSession([FakeResponse(403, b"AuthenticationFailed")])
        with pytest.raises(BlobTransferError) as ei:
            _client(session).upload(credential, "a.txt", b"x")
        assert ei.value.context["status"] == 403
        assert len(session.calls) == 1  # no retry at this layer

    def test_transport_error_is_wrapped(self, credential):
        session = FakeSession([requests.ConnectionError("reset")])
        with pytest.raises(BlobTransferError) as ei:
            _client(session).upload(credential, "a.txt", b"x")
        assert isinstance(ei.value.cause, requests.ConnectionError)


@pytest.mark.unit
class TestDownload:
    def test_get_returns_body(self, credential):
        session = FakeSession([FakeResponse(200, b"payload")])
        body = _client(session).download(credential, "/c/blob.bin")

        assert body == b"payload"
        call = session.calls[0]
        assert call["method"] == "GET"
        assert "x-ms-blob-type" not in call["headers"]
        assert call["headers"]["Authorization"].startswith("SharedKeyLite acct:")

    def test_get_to_file(self, credential, tmp_path):
        session = FakeSession([FakeResponse(200, b"payload")])
        out = tmp_path / "sub" / "blob.bin"
        result = _client(session).download(credential, "c/blob.bin", out)

        assert result == out
        assert out.read_bytes() == b"payload"

    def test_get_404_writes_nothing(self, credential, tmp_path):
        session = FakeSession([FakeResponse(404)])
        out = tmp_path / "blob.bin"
        with pytest.raises(BlobTransferError):
            _client(session).download(credential, "c/blob.bin", out)
        assert not out.exists()
