# tests/test_signing.py
from __future__ import annotations

import time
from urllib.parse import parse_qsl, urlencode, urlsplit

import pytest

from download_gateway.core.security import constant_time_equals, constant_time_hex_equals
from download_gateway.services.signing import (
    CapabilitySigner,
    canonical_query,
    parse_expires_at,
)

from tests.conftest import BASE_URL, START_MS, TEST_SECRET, FakeClock

TTL_MS = 60_000


def _params(url: str) -> dict[str, str]:
    return dict(parse_qsl(urlsplit(url).query))


def _rebuild(url: str, params: dict[str, str]) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}{parts.path}?{urlencode(params)}"


def _flip(ch: str) -> str:
    return "1" if ch == "0" else "0"


def test_download_url_round_trip(signer: CapabilitySigner) -> None:
    url = signer.sign_download(BASE_URL, "u1", "f1", TTL_MS)

    assert url.startswith(f"{BASE_URL}/download?")
    claims = signer.verify_download(url)
    assert claims is not None
    assert claims.identity == "u1"
    assert claims.resource_id == "f1"
    assert claims.expires_at == START_MS + TTL_MS


def test_manage_url_round_trip(signer: CapabilitySigner) -> None:
    url = signer.sign_manage(BASE_URL, "u1", TTL_MS)

    assert url.startswith(f"{BASE_URL}/manage?")
    claims = signer.verify_manage(url)
    assert claims is not None
    assert claims.identity == "u1"
    assert claims.resource_id is None


def test_identity_with_reserved_characters_round_trips(signer: CapabilitySigner) -> None:
    identity = "user name&role=admin/é"
    url = signer.sign_download(BASE_URL, identity, "f 1", TTL_MS)

    claims = signer.verify_download(url)
    assert claims is not None
    assert claims.identity == identity
    assert claims.resource_id == "f 1"


@pytest.mark.parametrize("field", ["userId", "fileId", "expiresAt", "signature"])
def test_single_character_change_is_rejected(signer: CapabilitySigner, field: str) -> None:
    url = signer.sign_download(BASE_URL, "u1", "f1", TTL_MS)
    params = _params(url)
    value = params[field]
    params[field] = value[:-1] + _flip(value[-1])

    assert signer.verify_download(_rebuild(url, params)) is None


def test_expiry_boundary(clock: FakeClock, signer: CapabilitySigner) -> None:
    url = signer.sign_download(BASE_URL, "u1", "f1", TTL_MS)

    clock.advance(TTL_MS - 1)
    assert signer.verify_download(url) is not None
    clock.advance(1)
    assert signer.verify_download(url) is not None
    clock.advance(1)
    assert signer.verify_download(url) is None


def test_other_secret_rejects(signer: CapabilitySigner, clock: FakeClock) -> None:
    other = CapabilitySigner("another-secret", clock=clock)
    url = signer.sign_download(BASE_URL, "u1", "f1", TTL_MS)

    assert other.verify_download(url) is None


def test_download_and_manage_capabilities_are_not_interchangeable(
    signer: CapabilitySigner,
) -> None:
    download_url = signer.sign_download(BASE_URL, "u1", "f1", TTL_MS)
    manage_url = signer.sign_manage(BASE_URL, "u1", TTL_MS)

    assert signer.verify_manage(download_url) is None
    assert signer.verify_download(manage_url) is None

    params = _params(manage_url)
    params["fileId"] = "f1"
    assert signer.verify_download(_rebuild(manage_url, params)) is None


def test_identity_cannot_smuggle_a_file_id(signer: CapabilitySigner) -> None:
    expires_at = START_MS + TTL_MS

    smuggled = signer.manage_signature("u1&fileId=f1", expires_at)
    assert smuggled != signer.download_signature("u1", "f1", expires_at)
    assert canonical_query("u1&fileId=f1", None, expires_at) != canonical_query(
        "u1", "f1", expires_at
    )


@pytest.mark.parametrize("missing", ["userId", "fileId", "expiresAt", "signature"])
def test_missing_parameter_is_rejected(signer: CapabilitySigner, missing: str) -> None:
    url = signer.sign_download(BASE_URL, "u1", "f1", TTL_MS)
    params = _params(url)
    del params[missing]

    assert signer.verify_download(_rebuild(url, params)) is None


@pytest.mark.parametrize(
    "raw", ["", "abc", "12.5", "1e6", " 123", "0x10", "9" * 20, "9" * 5000, "-" + "9" * 5000]
)
def test_malformed_expiry_is_rejected(signer: CapabilitySigner, raw: str) -> None:
    url = signer.sign_download(BASE_URL, "u1", "f1", TTL_MS)
    params = _params(url)
    params["expiresAt"] = raw

    assert parse_expires_at(raw) is None
    assert signer.verify_download(_rebuild(url, params)) is None


def test_parse_expires_at_accepts_plain_integers() -> None:
    assert parse_expires_at("1700000000000") == 1_700_000_000_000
    assert parse_expires_at("-5") == -5


def test_empty_secret_is_refused() -> None:
    with pytest.raises(ValueError):
        CapabilitySigner("")


def test_comparison_helpers() -> None:
    assert constant_time_equals("abc", "abc")
    assert not constant_time_equals("abc", "abd")
    assert not constant_time_equals("abc", "abcd")
    assert constant_time_hex_equals("0aff", "0aff")
    assert not constant_time_hex_equals("0aff", "0AFF")
    assert not constant_time_hex_equals(" 0aff", "0aff")
    assert not constant_time_hex_equals("0a ff", "0aff")
    assert not constant_time_hex_equals("", "")
    assert not constant_time_hex_equals("zz", "00")
    assert not constant_time_hex_equals("0a", "0b")


def test_signature_check_time_does_not_depend_on_mismatch_position(
    signer: CapabilitySigner,
) -> None:
    expires_at = START_MS + TTL_MS
    good = signer.download_signature("u1", "f1", expires_at)
    near = good[:-1] + _flip(good[-1])
    far = "".join(_flip(ch) for ch in good)
    rounds = 2000

    def measure(candidate: str) -> float:
        start = time.perf_counter()
        for _ in range(rounds):
            signer.check_download("u1", "f1", expires_at, candidate, now=START_MS)
        return time.perf_counter() - start

    near_best = min(measure(near) for _ in range(7))
    far_best = min(measure(far) for _ in range(7))

    assert abs(near_best - far_best) < max(near_best, far_best) * 0.5


def test_default_clock_is_wall_time() -> None:
    signer = CapabilitySigner(TEST_SECRET)
    url = signer.sign_download(BASE_URL, "u1", "f1", TTL_MS)

    assert signer.verify_download(url) is not None
