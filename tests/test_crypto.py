"""Tests for the default cipher, content hash and stream codec."""

import hashlib

import pytest

from chatsync.codec import MAX_FRAME_BYTES, decode, encode
from chatsync.crypto import FernetCipher, content_hash, derive_fernet_key


class TestFernetCipher:
    def test_members_sharing_a_secret_can_read(self):
        sender = FernetCipher("room-secret")
        reader = FernetCipher("room-secret")

        token = sender.encrypt("hello", "alice-id")

        assert token != "hello"
        assert reader.decrypt(token, "bob-id") == "hello"

    def test_wrong_secret_raises_value_error(self):
        token = FernetCipher("one").encrypt("hello", "alice-id")

        with pytest.raises(ValueError):
            FernetCipher("two").decrypt(token, "bob-id")

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            derive_fernet_key("")


class TestContentHash:
    def test_hashes_plaintext_utf8(self):
        assert content_hash("héllo") == hashlib.sha256("héllo".encode("utf-8")).hexdigest()


class TestCodec:
    def test_record_survives_frame(self):
        record = {"id": "r1", "encrypted": True, "created_at": 1700000000000}

        assert decode(encode(record)) == record

    def test_oversized_frame_rejected(self):
        with pytest.raises(ValueError):
            decode(b"\x00" * (MAX_FRAME_BYTES + 1))
