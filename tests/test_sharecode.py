"""Tests for share code generation."""

import importlib

import pytest

from whisper_server import config
from whisper_server.errors import ExhaustedError
from whisper_server.sharecode import generate_share_code, looks_like_share_code, new_token


def test_new_token_shape():
    """Default tokens carry 128 bits as 22 URL-safe characters."""
    token = new_token()

    assert len(token) >= 22
    assert looks_like_share_code(token)


@pytest.mark.parametrize("nbytes", [0, 4, 8, 15])
def test_new_token_keeps_128_bits(nbytes):
    assert len(new_token(nbytes)) >= 22


def test_share_code_bytes_setting_has_floor(monkeypatch):
    monkeypatch.setenv("WHISPER_SHARE_CODE_BYTES", "4")
    try:
        importlib.reload(config)
        assert config.SHARE_CODE_BYTES == config.MIN_SHARE_CODE_BYTES == 16
    finally:
        monkeypatch.delenv("WHISPER_SHARE_CODE_BYTES")
        importlib.reload(config)


def test_codes_are_unique():
    issued = set()
    for _ in range(500):
        code = generate_share_code(issued.__contains__)
        assert code not in issued
        issued.add(code)

    assert len(issued) == 500


def test_retries_on_collision():
    candidates = iter(["taken1", "taken2", "fresh"])
    taken = {"taken1", "taken2"}

    code = generate_share_code(taken.__contains__, token_factory=lambda: next(candidates))

    assert code == "fresh"


def test_exhausted_after_max_attempts():
    attempts = []

    def always_taken(code):
        attempts.append(code)
        return True

    with pytest.raises(ExhaustedError):
        generate_share_code(always_taken, max_attempts=5)

    assert len(attempts) == 5


@pytest.mark.parametrize("code,expected", [
    ("Ab3_-xYz09Ab3_-xYz09AB", True),
    ("doesnotexist123", True),
    ("", False),
    ("has space", False),
    ("../etc/passwd", False),
    ("code\n", False),
    ("x" * 129, False),
])
def test_looks_like_share_code(code, expected):
    assert looks_like_share_code(code) is expected
