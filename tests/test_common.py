"""Tests for the address helpers and the exceptions."""

import pytest

from fediscover.common import (
    HTTPStatusError,
    NetworkError,
    SchemaValidationError,
    TaskTimeout,
    instance_host,
    is_supported_software,
    normalize_instance,
)

RAW_ADDRESSES = [
    "lemmy.world",
    "  lemmy.world  ",
    "lemmy.world/",
    "https://lemmy.world///",
    "http://old.example/",
    "HTTPS://Lemmy.World/",
    "feddit.example:8443",
    "https://sub.example/path/",
    "https://",
    "",
    "http://[::1",
    "a.example/x://y",
    "lemmy.world/redirect?to=https://x",
]


class TestNormalizeInstance:
    def test_bare_domain_gets_https(self):
        assert normalize_instance("lemmy.world") == "https://lemmy.world"

    def test_whitespace_and_trailing_slashes(self):
        assert normalize_instance("  lemmy.world//  ") == "https://lemmy.world"

    def test_explicit_scheme_is_kept(self):
        assert normalize_instance("http://old.example/") == "http://old.example"

    def test_case_is_normalized(self):
        assert normalize_instance("HTTPS://Lemmy.World") == "https://lemmy.world"

    def test_separator_inside_the_path(self):
        assert normalize_instance("a.example/x://y") == "https://a.example/x://y"
        assert (
            normalize_instance("lemmy.world/redirect?to=https://x")
            == "https://lemmy.world/redirect"
        )

    def test_path_is_kept(self):
        assert normalize_instance("https://sub.example/path/") == "https://sub.example/path"

    @pytest.mark.parametrize("raw", RAW_ADDRESSES)
    def test_idempotent(self, raw):
        once = normalize_instance(raw)
        assert normalize_instance(once) == once

    @pytest.mark.parametrize("raw", [raw for raw in RAW_ADDRESSES if raw.strip()])
    def test_scheme_prefixed_without_trailing_slash(self, raw):
        normalized = normalize_instance(raw)
        scheme, separator, _rest = normalized.partition("://")
        assert separator == "://"
        assert scheme in ("http", "https")
        assert not normalized.endswith("/") or normalized.endswith("://")


def test_instance_host():
    assert instance_host("https://lemmy.world") == "lemmy.world"
    assert instance_host("https://feddit.example:8443") == "feddit.example:8443"


@pytest.mark.parametrize(
    "software, expected",
    [
        ("lemmy", True),
        ("piefed", True),
        (" Lemmy ", True),
        ("mastodon", False),
        ("", False),
        (None, False),
    ],
)
def test_is_supported_software(software, expected):
    assert is_supported_software(software) is expected


def test_request_errors_carry_url_and_cause():
    err = HTTPStatusError("https://a.example/api/v3/site", 502)
    assert err.status == 502
    assert err.url == "https://a.example/api/v3/site"
    assert "502" in str(err)
    assert not err.TRANSIENT
    assert NetworkError("https://a.example", "refused").TRANSIENT
    assert not SchemaValidationError("https://a.example", "bad").TRANSIENT


def test_task_timeout_message():
    err = TaskTimeout("https://a.example", 10)
    assert "https://a.example" in str(err)
    assert err.timeout == 10
