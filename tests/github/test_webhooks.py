"""Tests for GitHub webhook signature verification and event parsing."""

import hashlib
import hmac
import json
from unittest.mock import patch

import pytest

from repolens.core.errors import (
    InvalidSignatureError,
    MissingSignatureError,
    WebhookConfigurationError,
)
from repolens.github import webhooks
from repolens.github.webhooks import (
    SignatureAlgorithm,
    WebhookConfig,
    compute_signature,
    parse_event,
    select_signature_header,
    signatures_match,
    summarize_event,
    verify,
)

MOCK_SECRET = "test-webhook-secret-123"
CONFIG = WebhookConfig(secret=MOCK_SECRET)
BODY = b'{"action":"created","installation":{"id":42}}'


def _sign(payload: bytes, algorithm: str = "sha256", secret: str = MOCK_SECRET) -> str:
    digestmod = hashlib.sha256 if algorithm == "sha256" else hashlib.sha1
    return f"{algorithm}=" + hmac.new(secret.encode("utf-8"), payload, digestmod).hexdigest()


def _flip_last_hex_char(signature: str) -> str:
    last = signature[-1]
    return signature[:-1] + ("0" if last != "0" else "1")


class TestComputeSignature:
    @pytest.mark.parametrize(
        "secret,body",
        [
            (MOCK_SECRET, BODY),
            ("s", b""),
            ("ünïcode-secret", "payload with ümlauts".encode("utf-8")),
            ("another", bytes(range(256))),
        ],
    )
    def test_sha256_matches_independent_hmac(self, secret, body):
        assert compute_signature(secret, body, SignatureAlgorithm.SHA256) == _sign(
            body, "sha256", secret
        )

    def test_sha1_matches_independent_hmac(self):
        assert compute_signature(MOCK_SECRET, BODY, SignatureAlgorithm.SHA1) == _sign(BODY, "sha1")

    def test_prefixes(self):
        assert compute_signature("k", b"x", SignatureAlgorithm.SHA256).startswith("sha256=")
        assert compute_signature("k", b"x", SignatureAlgorithm.SHA1).startswith("sha1=")


class TestSelectSignatureHeader:
    def test_sha256_preferred_when_both_present(self):
        header = select_signature_header("sha256=aa", "sha1=bb")
        assert header.algorithm is SignatureAlgorithm.SHA256
        assert header.value == "sha256=aa"

    def test_sha1_used_when_sha256_absent(self):
        header = select_signature_header(None, "sha1=bb")
        assert header.algorithm is SignatureAlgorithm.SHA1
        assert header.value == "sha1=bb"

    def test_empty_sha256_header_counts_as_absent(self):
        header = select_signature_header("", "sha1=bb")
        assert header.algorithm is SignatureAlgorithm.SHA1

    def test_none_when_no_header(self):
        assert select_signature_header(None, None) is None


class TestSignaturesMatch:
    def test_equal_values_match(self):
        assert signatures_match("sha256=abc", "sha256=abc") is True

    def test_length_mismatch_skips_content_compare(self):
        with patch.object(webhooks.hmac, "compare_digest") as compare:
            assert signatures_match("sha256=abcd", "sha256=abc") is False
        compare.assert_not_called()

    def test_equal_length_uses_constant_time_compare(self):
        with patch.object(webhooks.hmac, "compare_digest", return_value=False) as compare:
            assert signatures_match("sha256=abcd", "sha256=abce") is False
        compare.assert_called_once_with(b"sha256=abcd", b"sha256=abce")

    def test_non_ascii_header_does_not_raise(self):
        assert signatures_match("sha256=ab", "sha256=é") is False


class TestVerify:
    def test_valid_sha256_signature_passes(self):
        header = verify(BODY, _sign(BODY), None, CONFIG)
        assert header.algorithm is SignatureAlgorithm.SHA256

    def test_valid_sha1_signature_passes(self):
        header = verify(BODY, None, _sign(BODY, "sha1"), CONFIG)
        assert header.algorithm is SignatureAlgorithm.SHA1

    @pytest.mark.parametrize("algorithm", ["sha256", "sha1"])
    def test_single_byte_body_change_fails(self, algorithm):
        signature = _sign(BODY, algorithm)
        tampered = bytearray(BODY)
        tampered[5] ^= 0x01
        sig256, sig1 = (signature, None) if algorithm == "sha256" else (None, signature)

        with pytest.raises(InvalidSignatureError):
            verify(bytes(tampered), sig256, sig1, CONFIG)

    @pytest.mark.parametrize("algorithm", ["sha256", "sha1"])
    def test_single_digest_char_change_fails(self, algorithm):
        signature = _flip_last_hex_char(_sign(BODY, algorithm))
        sig256, sig1 = (signature, None) if algorithm == "sha256" else (None, signature)

        with pytest.raises(InvalidSignatureError):
            verify(BODY, sig256, sig1, CONFIG)

    def test_reserialized_body_fails(self):
        """Pretty-printing the JSON changes the bytes and must fail."""
        signature = _sign(BODY)
        reserialized = json.dumps(json.loads(BODY), indent=2).encode()

        with pytest.raises(InvalidSignatureError):
            verify(reserialized, signature, None, CONFIG)

    def test_short_header_rejected(self):
        with pytest.raises(InvalidSignatureError):
            verify(BODY, "sha256=bad", None, CONFIG)

    def test_missing_prefix_rejected(self):
        digest_only = _sign(BODY).removeprefix("sha256=")
        with pytest.raises(InvalidSignatureError):
            verify(BODY, digest_only, None, CONFIG)

    def test_sha256_checked_even_when_valid_sha1_present(self):
        """A bad sha256 header is not rescued by a good sha1 header."""
        with pytest.raises(InvalidSignatureError):
            verify(BODY, "sha256=" + "0" * 64, _sign(BODY, "sha1"), CONFIG)

    def test_bad_sha1_ignored_when_sha256_valid(self):
        header = verify(BODY, _sign(BODY), "sha1=garbage", CONFIG)
        assert header.algorithm is SignatureAlgorithm.SHA256

    def test_missing_headers_rejected(self):
        with pytest.raises(MissingSignatureError):
            verify(BODY, None, None, CONFIG)

    def test_missing_secret_raises_configuration_error(self):
        with pytest.raises(WebhookConfigurationError):
            verify(BODY, _sign(BODY), None, WebhookConfig(secret=""))

    def test_missing_secret_checked_before_headers(self):
        with pytest.raises(WebhookConfigurationError):
            verify(BODY, None, None, WebhookConfig(secret=""))

    def test_skip_verification_accepts_and_warns(self):
        config = WebhookConfig(secret="", skip_verification=True)
        with patch.object(webhooks.logger, "warning") as warn:
            assert verify(b"anything", None, None, config) is None
        warn.assert_called_once()

    def test_wrong_secret_rejected(self):
        with pytest.raises(InvalidSignatureError):
            verify(BODY, _sign(BODY, secret="other-secret"), None, CONFIG)

    def test_error_status_codes(self):
        assert WebhookConfigurationError.status_code == 500
        assert InvalidSignatureError.status_code == 401
        assert MissingSignatureError.status_code == 401


class TestWebhookConfig:
    def test_from_settings(self, settings):
        config = WebhookConfig.from_settings(settings)
        assert config.secret == settings.github_webhook_secret
        assert config.skip_verification is False

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            CONFIG.secret = "changed"  # type: ignore[misc]


class TestParseEvent:
    def test_parses_json_payload(self):
        event = parse_event(BODY, "installation", "delivery-1")
        assert event.kind == "installation"
        assert event.delivery_id == "delivery-1"
        assert event.payload["installation"]["id"] == 42

    def test_malformed_payload_yields_none(self):
        with patch.object(webhooks.logger, "warning") as warn:
            event = parse_event(b"not json{", "push", "delivery-2")
        assert event.payload is None
        assert event.kind == "push"
        warn.assert_called_once()

    def test_invalid_utf8_yields_none(self):
        event = parse_event(b"\xff\xfe\x00", "push", "delivery-3")
        assert event.payload is None

    def test_too_deeply_nested_yields_none(self):
        with patch.object(webhooks.logger, "warning") as warn:
            event = parse_event(b"[" * 200000 + b"]" * 200000, "push", "delivery-4")
        assert event.payload is None
        warn.assert_called_once()


class TestSummarizeEvent:
    def test_extracts_context(self):
        event = parse_event(
            json.dumps(
                {
                    "action": "opened",
                    "installation": {"id": 7},
                    "repository": {"full_name": "octo/demo"},
                    "sender": {"login": "octocat"},
                }
            ).encode(),
            "pull_request",
            "d-1",
        )
        assert summarize_event(event) == {
            "event": "pull_request",
            "delivery_id": "d-1",
            "action": "opened",
            "installation_id": 7,
            "repository": "octo/demo",
            "sender": "octocat",
        }

    def test_handles_missing_fields_gracefully(self):
        event = parse_event(b"{}", "ping", "d-2")
        context = summarize_event(event)
        assert context["action"] is None
        assert context["installation_id"] is None

    def test_handles_null_payload(self):
        event = parse_event(b"oops", "push", "d-3")
        assert summarize_event(event)["repository"] is None

    def test_handles_non_object_payload(self):
        event = parse_event(b"[1, 2]", "push", "d-4")
        assert summarize_event(event)["sender"] is None

    def test_handles_scalar_nested_fields(self):
        event = parse_event(
            b'{"action": "created", "installation": 5, "repository": "octo/demo", "sender": []}',
            "installation",
            "d-5",
        )
        context = summarize_event(event)
        assert context["action"] == "created"
        assert context["installation_id"] is None
        assert context["repository"] is None
        assert context["sender"] is None
