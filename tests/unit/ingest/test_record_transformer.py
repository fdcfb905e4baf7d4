"""Unit tests for raw record mapping and augmentation policies."""

from __future__ import annotations

import random

from ingest.record_transformer import (
    RecordTransformer,
    build_transformer,
    default_region_policy,
    random_registration_year_policy,
)


def test_transform_maps_fields_and_mirrors_address() -> None:
    """Source fields should map onto the canonical document."""
    transformer = build_transformer("delhi-ncr", augment_registration_year=False)

    document = transformer.transform(
        {
            "_id": {"$oid": "65f1a2b3c4d5e6f708192a3b"},
            "mobile": "9810000001",
            "name": "Asha Verma",
            "fname": "Ravi Verma",
            "address": "12 Lodhi Road",
            "alt": "9810000002",
            "id": "ID-1001",
            "email": "asha@example.com",
        }
    )

    assert document.father_name == "Ravi Verma"
    assert document.alt_address == document.address == "12 Lodhi Road"
    assert document.alt_mobile == "9810000002"
    assert document.oid == document.internal_id == "65f1a2b3c4d5e6f708192a3b"
    assert document.region == "delhi-ncr"
    assert document.year_of_registration == 0


def test_transform_treats_mistyped_fields_as_absent() -> None:
    """Dirty upstream values should never raise."""
    transformer = build_transformer("delhi-ncr", augment_registration_year=False)

    document = transformer.transform(
        {"mobile": 9810000001, "name": ["Asha"], "_id": "plain", "region": 7, "alt": None}
    )

    assert (document.mobile, document.name, document.internal_id) == ("", "", "")
    assert document.region == "delhi-ncr"


def test_transform_accepts_non_mapping_input() -> None:
    """Non-mapping input should yield an empty document in the default region."""
    transformer = build_transformer("pune", augment_registration_year=False)

    document = transformer.transform(["not", "a", "record"])  # type: ignore[arg-type]

    assert document.mobile == "" and document.region == "pune"


def test_transform_reads_plain_oid() -> None:
    """A plain string oid should be used as the record id."""
    transformer = build_transformer("delhi-ncr", augment_registration_year=False)

    assert transformer.transform({"oid": "legacy-0004"}).internal_id == "legacy-0004"


def test_default_region_policy_prefers_record_region() -> None:
    """A record's own region should win over the default."""
    policy = default_region_policy("delhi-ncr")

    assert policy({"region": "up-west"}) == "up-west"
    assert policy({"region": ""}) == "delhi-ncr"


def test_random_registration_year_policy_draws_from_fixed_choices() -> None:
    """Missing years should be drawn from the fixed choices."""
    policy = random_registration_year_policy(random.Random(7))

    years = {policy({}) for _ in range(200)}

    assert years == {2022, 2023, 2024}


def test_random_registration_year_policy_keeps_supplied_year() -> None:
    """A supplied registration year should be kept."""
    policy = random_registration_year_policy(random.Random(7))

    assert policy({"year_of_registration": 2019}) == 2019
    assert policy({"year_of_registration": " 2018 "}) == 2018
    assert policy({"year_of_registration": True}) in (2022, 2023, 2024)


def test_policies_are_replaceable() -> None:
    """Custom policies should replace the default ones."""
    transformer = RecordTransformer(lambda raw: "fixed", lambda raw: 1999)

    document = transformer.transform({"region": "ignored"})

    assert (document.region, document.year_of_registration) == ("fixed", 1999)
