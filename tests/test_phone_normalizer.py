import pytest

from messaging.errors import InvalidRequest
from phone.normalizer import describe, normalize_e164


def test_normalize_e164():
    assert normalize_e164("(650) 253-0000", "US") == "+16502530000"
    assert normalize_e164("+1 650-253-0000", "US") == "+16502530000"
    assert normalize_e164("020 8366 1177", "GB") == "+442083661177"


@pytest.mark.parametrize("bad", ["invalid", "", None, 6502530000, "+1 555 000"])
def test_normalize_rejects(bad):
    with pytest.raises(InvalidRequest, match="Invalid phone number"):
        normalize_e164(bad, "US")


def test_describe_valid():
    info = describe("6502530000", "US")
    assert info.valid is True
    assert info.possible is True
    assert info.e164 == "+16502530000"
    assert info.country == "US"
    assert info.national == "(650) 253-0000"
    assert info.type == "fixed_or_mobile"


def test_describe_unparseable():
    info = describe("invalid", "US")
    assert info.to_dict() == {
        "valid": False,
        "possible": False,
        "e164": None,
        "country": None,
        "national": None,
        "type": None,
    }
