# sources/refs.py

"""
SOURCE REFERENCES

A purchase order (and an entity admin) points at exactly one supplier:

    Source = OrganizationSource(id) | HospitalSource(id)

The variant carries the type; callers switch on it with isinstance()
or match/case instead of comparing loose (type, id) string pairs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

SOURCE_ORGANIZATION = "organization"
SOURCE_HOSPITAL = "hospital"

SOURCE_TYPE_CHOICES = [
    (SOURCE_ORGANIZATION, "Organization"),
    (SOURCE_HOSPITAL, "Hospital"),
]


@dataclass(frozen=True)
class OrganizationSource:
    id: int
    source_type: ClassVar[str] = SOURCE_ORGANIZATION


@dataclass(frozen=True)
class HospitalSource:
    id: int
    source_type: ClassVar[str] = SOURCE_HOSPITAL


Source = Union[OrganizationSource, HospitalSource]


def make_source(source_type: str, source_id: int) -> Source:
    """Build the variant for a (type, id) pair read from storage or a request."""
    if source_type == SOURCE_ORGANIZATION:
        return OrganizationSource(int(source_id))
    if source_type == SOURCE_HOSPITAL:
        return HospitalSource(int(source_id))
    raise ValueError(f"Unknown source type: {source_type!r}")
