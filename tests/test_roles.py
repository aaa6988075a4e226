import pytest

from patra.security.roles import (
    ALL_ROLES,
    DEFAULT_ROLE,
    HEAD,
    INWARD_USER,
    OUTSIDE_POLICE_STATION,
    ROLE_SYNONYMS,
    SP,
    is_canonical_role,
    normalize_role,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("HOD", HEAD),
        ("hod", HEAD),
        ("Head", HEAD),
        ("inward", INWARD_USER),
        ("Inward User", INWARD_USER),
        ("inward-user", INWARD_USER),
        ("Superintendent", SP),
        ("police station", OUTSIDE_POLICE_STATION),
        ("  sp  ", SP),
    ],
)
def test_known_spellings_map_to_one_canonical_role(raw, expected):
    assert normalize_role(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_missing_role_defaults_to_user(raw):
    assert normalize_role(raw) == DEFAULT_ROLE


def test_unmapped_role_falls_back_to_lowercase_raw():
    assert normalize_role("Records Clerk") == "records clerk"
    assert not is_canonical_role(normalize_role("Records Clerk"))


def test_normalization_is_idempotent():
    samples = list(ALL_ROLES) + list(ROLE_SYNONYMS) + ["HOD", "Records Clerk", None, ""]
    for raw in samples:
        once = normalize_role(raw)
        assert normalize_role(once) == once


def test_every_synonym_targets_a_canonical_role():
    assert set(ROLE_SYNONYMS.values()) <= ALL_ROLES
