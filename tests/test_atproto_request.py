"""
Tests for XRPC request building.
"""

import json

import pytest
from yarl import URL

from social.graze.atkit.atproto.request import (
    QueryItems,
    append_query_items,
    build_request,
    clamp,
    guess_mime_type,
    xrpc_url,
)
from social.graze.atkit.errors import EmptyServiceURLError, InvalidRequestURLError
from social.graze.atkit.lexicon.server import CreateSessionInput


class TestXRPCURL:
    """Test building XRPC method URLs."""

    def test_builds_url(self):
        assert (
            xrpc_url("https://bsky.social", "app.bsky.feed.getTimeline")
            == "https://bsky.social/xrpc/app.bsky.feed.getTimeline"
        )

    def test_trailing_slash_stripped(self):
        assert (
            xrpc_url("https://pds.example.com/", "com.atproto.server.getSession")
            == "https://pds.example.com/xrpc/com.atproto.server.getSession"
        )

    @pytest.mark.parametrize("base_url", [None, "", "   "])
    def test_empty_base_url(self, base_url):
        with pytest.raises(EmptyServiceURLError):
            xrpc_url(base_url, "app.bsky.feed.getTimeline")

    @pytest.mark.parametrize("base_url", ["bsky.social", "ftp://bsky.social", "https://"])
    def test_invalid_base_url(self, base_url):
        with pytest.raises(InvalidRequestURLError):
            xrpc_url(base_url, "app.bsky.feed.getTimeline")

    @pytest.mark.parametrize("nsid", ["getTimeline", "app..bsky", "app.bsky.feed.get timeline"])
    def test_invalid_nsid(self, nsid):
        with pytest.raises(InvalidRequestURLError):
            xrpc_url("https://bsky.social", nsid)


class TestQueryItems:
    """Test ordered query parameters with repeated keys."""

    def test_repeated_keys_keep_order(self):
        params = QueryItems().extend(
            "uris", ["at://did:plc:a/app.bsky.feed.post/1", "at://did:plc:b/app.bsky.feed.post/2"]
        )
        url = append_query_items("https://api.example.com/xrpc/app.bsky.feed.getPosts", params)
        assert URL(url).query.getall("uris") == [
            "at://did:plc:a/app.bsky.feed.post/1",
            "at://did:plc:b/app.bsky.feed.post/2",
        ]

    def test_extend_truncates(self):
        params = QueryItems().extend("actors", [f"did:plc:{i}" for i in range(30)], max_items=25)
        assert len(params) == 25
        assert params.items()[-1] == ("actors", "did:plc:24")

    def test_none_values_skipped(self):
        params = QueryItems().add("cursor", None).add("actor", "alice.test")
        assert params.items() == [("actor", "alice.test")]

    def test_booleans_render_lowercase(self):
        params = QueryItems().add("includePins", True).add("priority", False)
        assert params.items() == [("includePins", "true"), ("priority", "false")]

    @pytest.mark.parametrize("value,expected", [(500, "100"), (0, "1"), (-5, "1"), (50, "50")])
    def test_limit_clamped(self, value, expected):
        assert QueryItems().add_limit(value).items() == [("limit", expected)]

    def test_limit_none_omitted(self):
        assert len(QueryItems().add_limit(None)) == 0

    def test_empty_items_leave_url_untouched(self):
        url = "https://api.example.com/xrpc/app.bsky.feed.getTimeline"
        assert append_query_items(url, QueryItems()) == url

    def test_values_percent_encoded(self):
        url = append_query_items(
            "https://api.example.com/xrpc/app.bsky.actor.searchActors",
            QueryItems().add("q", "hello world&more"),
        )
        assert url.endswith("?q=hello+world%26more") or url.endswith("?q=hello%20world%26more")

    def test_clamp(self):
        assert clamp(1001, 0, 1000) == 1000
        assert clamp(-1, 0, 1000) == 0


class TestBuildRequest:
    """Test building request descriptors."""

    def test_get_without_body_has_no_content_type(self):
        descriptor = build_request("https://bsky.social/xrpc/a.b.c", "get")
        assert descriptor.method == "GET"
        assert "Content-Type" not in descriptor.headers
        assert descriptor.headers["Accept"] == "application/json"
        assert descriptor.body is None
        assert descriptor.idempotent

    def test_post_without_body_has_content_type(self):
        descriptor = build_request("https://bsky.social/xrpc/a.b.c", "POST")
        assert descriptor.headers["Content-Type"] == "application/json"
        assert not descriptor.idempotent

    def test_authorization(self):
        descriptor = build_request(
            "https://bsky.social/xrpc/a.b.c", "GET", authorization="Bearer abc"
        )
        assert descriptor.authorization == "Bearer abc"

    def test_model_body_uses_aliases_and_omits_none(self):
        descriptor = build_request(
            "https://bsky.social/xrpc/com.atproto.server.createSession",
            "POST",
            body=CreateSessionInput(identifier="alice.test", password="hunter2"),
        )
        assert json.loads(descriptor.body) == {
            "identifier": "alice.test",
            "password": "hunter2",
        }

    def test_bytes_body_passes_through(self):
        descriptor = build_request(
            "https://bsky.social/xrpc/com.atproto.repo.uploadBlob",
            "POST",
            content_type="image/png",
            body=b"\x89PNG",
        )
        assert descriptor.body == b"\x89PNG"
        assert descriptor.headers["Content-Type"] == "image/png"

    def test_idempotent_override(self):
        descriptor = build_request("https://bsky.social/xrpc/a.b.c", "POST", idempotent=True)
        assert descriptor.idempotent

    def test_headers_are_immutable(self):
        descriptor = build_request("https://bsky.social/xrpc/a.b.c", "GET")
        with pytest.raises(TypeError):
            descriptor.headers["X-Extra"] = "1"


class TestGuessMimeType:
    @pytest.mark.parametrize(
        "filename,mime_type",
        [
            ("cat.PNG", "image/png"),
            ("cat.jpg", "image/jpeg"),
            ("clip.mp4", "video/mp4"),
            ("notes", "application/octet-stream"),
        ],
    )
    def test_guess(self, filename, mime_type):
        assert guess_mime_type(filename) == mime_type
