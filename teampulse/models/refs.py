"""Soft references from activities to canonical identities and projects.

Activities keep the raw alias they were created with. When resolution has
succeeded the reference is ``Resolved``; otherwise it stays ``Unresolved``
and the activity still counts toward alias-based metrics.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Resolved:
    """Reference to a canonical record by id."""

    id: str

    @property
    def is_resolved(self) -> bool:
        return True


@dataclass(frozen=True)
class Unresolved:
    """Reference that only carries the raw per-source value."""

    raw: str

    @property
    def is_resolved(self) -> bool:
        return False


ProjectRef = Union[Resolved, Unresolved]
IdentityRef = Union[Resolved, Unresolved]


def make_ref(resolved_id, raw_value) -> Union[Resolved, Unresolved]:
    if resolved_id:
        return Resolved(str(resolved_id))
    return Unresolved(raw_value)
