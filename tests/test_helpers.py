import pytest
from hashids import Hashids

from src.helpers import ALPHABET, MIN_LENGTH, IdentifierCodec

TEST_SALT = "test-salt"


# Fixtures
@pytest.fixture
def codec():
    return IdentifierCodec(TEST_SALT)


# Tests encode
def test_encode_properties(codec):
    for ordinal in [0, 1, 2, 9, 100, 123456789, 2**63 - 1]:
        identifier = codec.encode(ordinal)
        assert len(identifier) >= MIN_LENGTH
        assert all(char in ALPHABET for char in identifier)


def test_encode_consistency(codec):
    assert codec.encode(42) == IdentifierCodec(TEST_SALT).encode(42)


def test_encode_different_salts():
    codec1 = IdentifierCodec("alpha")
    codec2 = IdentifierCodec("beta")
    assert [codec1.encode(n) for n in range(1, 20)] != [
        codec2.encode(n) for n in range(1, 20)
    ]


def test_encode_negative(codec):
    with pytest.raises(ValueError):
        codec.encode(-1)


def test_encode_distinct(codec):
    identifiers = {codec.encode(n) for n in range(5000)}
    assert len(identifiers) == 5000


# Tests decode
@pytest.mark.parametrize("salt", ["", TEST_SALT, "another salt"])
@pytest.mark.parametrize("min_length", [0, MIN_LENGTH, 10])
def test_decode_reverses_encode(salt, min_length):
    codec = IdentifierCodec(salt, min_length=min_length)
    for ordinal in list(range(3000)) + [2**32, 2**63 - 1]:
        assert codec.decode(codec.encode(ordinal)) == ordinal


@pytest.mark.parametrize(
    "identifier",
    ["", "ABC", "a-b", "../counter.dat", "!!!", "abc def", "\x00ab"],
)
def test_decode_foreign_strings(codec, identifier):
    assert codec.decode(identifier) is None


def test_decode_multiple_numbers(codec):
    hashids = Hashids(salt=TEST_SALT, min_length=MIN_LENGTH, alphabet=ALPHABET)
    assert codec.decode(hashids.encode(1, 2)) is None


def test_decode_other_salt():
    codec = IdentifierCodec("alpha", min_length=8)
    other = IdentifierCodec("beta", min_length=8)
    assert all(other.decode(codec.encode(n)) != n for n in range(1, 50))


def test_invalid_alphabet():
    with pytest.raises(ValueError):
        IdentifierCodec(TEST_SALT, alphabet="abc")
