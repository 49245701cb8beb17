"""Tests for the non-secure backup obfuscator."""

import string

import pytest

from tutor.core.exceptions import DecryptionError
from tutor.utils.obfuscation import NonSecureObfuscator


@pytest.fixture
def obfuscator():
    return NonSecureObfuscator()


@pytest.mark.parametrize(
    "text",
    [
        "",
        "a",
        string.printable,
        '{"version": "1.1.0", "users": []}',
        "héllo wörld ✓",
    ],
)
def test_roundtrip(obfuscator, text):
    payload = obfuscator.obfuscate(text, "s3cret")
    assert obfuscator.deobfuscate(payload, "s3cret") == text


def test_output_is_not_plaintext(obfuscator):
    payload = obfuscator.obfuscate("progress data", "key")
    assert "progress" not in payload


def test_wrong_passphrase_fails_or_returns_garbage(obfuscator):
    text = "The quick brown fox jumps over the lazy dog"
    payload = obfuscator.obfuscate(text, "right")
    try:
        result = obfuscator.deobfuscate(payload, "wrong")
    except DecryptionError:
        return
    assert result != text


def test_invalid_base64_raises_decryption_error(obfuscator):
    with pytest.raises(DecryptionError):
        obfuscator.deobfuscate("not base64 !!!", "key")


def test_empty_passphrase_is_rejected(obfuscator):
    with pytest.raises(ValueError):
        obfuscator.obfuscate("text", "")


def test_snapshot_roundtrip(obfuscator):
    document = {"version": "1.1.0", "exportedAt": "2026-01-01T00:00:00Z", "users": [{"id": "u1"}]}
    payload = obfuscator.obfuscate_snapshot(document, "pw")
    assert obfuscator.deobfuscate_snapshot(payload, "pw") == document


def test_snapshot_with_non_object_payload_raises(obfuscator):
    payload = obfuscator.obfuscate("[1, 2]", "pw")
    with pytest.raises(DecryptionError):
        obfuscator.deobfuscate_snapshot(payload, "pw")


def test_snapshot_with_wrong_passphrase_raises(obfuscator):
    payload = obfuscator.obfuscate_snapshot({"version": "1.1.0"}, "right")
    with pytest.raises(DecryptionError):
        obfuscator.deobfuscate_snapshot(payload, "wrong")
