from __future__ import annotations

import pytest

from azimuth_cli import names


def test_galaxy_and_star_names() -> None:
    assert names.encode(0) == "~zod"
    assert names.encode(1) == "~nec"
    assert names.encode(255) == "~fes"
    assert names.encode(256) == "~marzod"


def test_known_planet_name() -> None:
    assert names.encode(1624961343) == "~sampel-palnet"
    assert names.decode("~sampel-palnet") == 1624961343


@pytest.mark.parametrize("value", [0, 9, 256, 65535, 65536, 1624961343, 0xFFFFFFFF])
def test_decode_inverts_encode(value: int) -> None:
    assert names.decode(names.encode(value)) == value


def test_decode_accepts_missing_tilde() -> None:
    assert names.decode("marzod") == 256


def test_fynd_inverts_fein_for_planets() -> None:
    for value in (0x10000, 0x12345678, 0xFFFFFFFF):
        assert names.fynd(names.fein(value)) == value


@pytest.mark.parametrize("bad", ["", "~", "~zodd", "~sampel_palnet", "~foo-bar", "~doz-marzod"])
def test_invalid_names_are_rejected(bad: str) -> None:
    assert not names.is_valid(bad)
    with pytest.raises(ValueError):
        names.decode(bad)


def test_non_canonical_leading_zero_word_is_rejected() -> None:
    # ~dozzod-marzod would decode to 256, whose canonical name is ~marzod.
    with pytest.raises(ValueError):
        names.decode("~dozzod-marzod")
