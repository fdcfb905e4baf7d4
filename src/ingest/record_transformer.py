"""Raw record to canonical document mapping.

This module maps one heterogeneous raw record into the fixed document
schema. Two data-augmentation policies run as separate, replaceable
steps: region tagging and random registration years. Registration years
produced by augmentation are synthetic, not facts about the person.
"""

from __future__ import annotations

import random
from typing import Any, Callable, Mapping

from core.constants import REGISTRATION_YEAR_CHOICES
from core.types import CanonicalDocument, RawRecord

RegionPolicy = Callable[[RawRecord], str]
RegistrationYearPolicy = Callable[[RawRecord], int]


def default_region_policy(default_region: str) -> RegionPolicy:
    """Tag records with their own ``region`` or fall back to a default."""

    def assign_region(raw: RawRecord) -> str:
        return _string_field(raw, "region") or default_region

    return assign_region


def random_registration_year_policy(rng: random.Random | None = None) -> RegistrationYearPolicy:
    """Keep a supplied year, otherwise pick one of the fixed choices at random."""
    generator = rng or random.Random()

    def assign_year(raw: RawRecord) -> int:
        supplied = _year_field(raw)
        if supplied:
            return supplied
        return generator.choice(REGISTRATION_YEAR_CHOICES)

    return assign_year


def supplied_registration_year_policy(raw: RawRecord) -> int:
    """Keep a supplied year and leave it at zero otherwise."""
    return _year_field(raw)


class RecordTransformer:
    """Map raw records into canonical documents. Never raises."""

    def __init__(
        self,
        region_policy: RegionPolicy,
        registration_year_policy: RegistrationYearPolicy = supplied_registration_year_policy,
    ) -> None:
        self._region_policy = region_policy
        self._registration_year_policy = registration_year_policy

    def transform(self, raw: RawRecord) -> CanonicalDocument:
        """Map one raw record, treating mistyped fields as absent."""
        if not isinstance(raw, Mapping):
            raw = {}
        address = _string_field(raw, "address")
        external_id = _external_id(raw)
        return CanonicalDocument(
            mobile=_string_field(raw, "mobile"),
            name=_string_field(raw, "name"),
            father_name=_string_field(raw, "fname"),
            address=address,
            alt_address=address,
            alt_mobile=_string_field(raw, "alt"),
            person_id=_string_field(raw, "id"),
            oid=external_id,
            email=_string_field(raw, "email"),
            year_of_registration=self._registration_year_policy(raw),
            region=self._region_policy(raw),
            internal_id=external_id,
        )


def build_transformer(
    default_region: str,
    augment_registration_year: bool,
    rng: random.Random | None = None,
) -> RecordTransformer:
    """Build a transformer with the configured augmentation steps."""
    year_policy = (
        random_registration_year_policy(rng)
        if augment_registration_year
        else supplied_registration_year_policy
    )
    return RecordTransformer(default_region_policy(default_region), year_policy)


def _string_field(raw: RawRecord, key: str) -> str:
    value = raw.get(key)
    return value if isinstance(value, str) else ""


def _external_id(raw: RawRecord) -> str:
    """Read a Mongo-style ``_id.$oid`` or a plain ``oid`` string."""
    mongo_id: Any = raw.get("_id")
    if isinstance(mongo_id, Mapping):
        oid = mongo_id.get("$oid")
        if isinstance(oid, str) and oid:
            return oid
    return _string_field(raw, "oid")


def _year_field(raw: RawRecord) -> int:
    value = raw.get("year_of_registration")
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return 0
