"""Unit tests for circle invite codes."""

import string

from curio.circles.invite_codes import (
    INVITE_CHARSET,
    INVITE_LENGTH,
    generate_invite_code,
    is_valid_invite_code,
    normalize_invite_code,
)


class TestInviteCodes:
    def test_code_is_8_chars(self):
        assert len(generate_invite_code()) == INVITE_LENGTH == 8

    def test_code_charset(self):
        assert INVITE_CHARSET == string.ascii_uppercase + string.digits
        for _ in range(100):
            assert all(c in INVITE_CHARSET for c in generate_invite_code())

    def test_codes_are_unique(self):
        assert len({generate_invite_code() for _ in range(1000)}) == 1000

    def test_normalize(self):
        assert normalize_invite_code(" abc12345 ") == "ABC12345"

    def test_validity(self):
        assert is_valid_invite_code("abcd1234")
        assert not is_valid_invite_code("ABC-1234")
        assert not is_valid_invite_code("ABC123")
