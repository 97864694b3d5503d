"""Tests for the genesis validator."""

import hashlib

import pytest

from monoctl.core import genesis
from monoctl.errors import ChainIdMismatch, DigestMismatch, InvalidGenesis

from conftest import make_genesis


class TestValidate:
    def test_returns_chain_id(self) -> None:
        assert genesis.validate(make_genesis("mono-test-1")) == "mono-test-1"

    @pytest.mark.parametrize("data", [
        b"",
        b"not json",
        b"[1, 2]",
        b'{"genesis_time": "2025-01-01T00:00:00Z"}',
        b'{"chain_id": ""}',
        b'{"chain_id": 7}',
    ])
    def test_invalid(self, data: bytes) -> None:
        with pytest.raises(InvalidGenesis) as exc:
            genesis.validate(data)
        assert exc.value.fatal


class TestChainId:
    def test_match(self) -> None:
        assert genesis.check_chain_id(make_genesis(), "mono-sprint-1") == "mono-sprint-1"

    def test_mismatch_is_fatal(self) -> None:
        with pytest.raises(ChainIdMismatch) as exc:
            genesis.check_chain_id(make_genesis("mono-local-1"), "mono-sprint-1")
        assert exc.value.fatal
        assert "expected mono-sprint-1, got mono-local-1" in exc.value.message


class TestDigest:
    def test_digest_is_sha256_of_raw_bytes(self) -> None:
        data = make_genesis()
        assert genesis.digest(data) == hashlib.sha256(data).hexdigest()

    def test_verify_case_insensitive(self) -> None:
        data = make_genesis()
        expected = hashlib.sha256(data).hexdigest().upper()
        assert genesis.verify_digest(data, expected) == expected.lower()

    def test_mismatch(self) -> None:
        with pytest.raises(DigestMismatch) as exc:
            genesis.verify_digest(make_genesis(), "0" * 64)
        assert exc.value.fatal
        assert exc.value.expected == "0" * 64

    def test_malformed_expected_never_matches(self) -> None:
        with pytest.raises(DigestMismatch):
            genesis.verify_digest(make_genesis(), "xyz")

    def test_embedded_digest_ignored(self) -> None:
        # a genesis that claims its own hash gains nothing from it
        data = b'{"chain_id": "mono-sprint-1", "sha256": "' + b"0" * 64 + b'"}'
        with pytest.raises(DigestMismatch):
            genesis.verify_digest(data, "0" * 64)
