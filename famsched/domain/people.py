"""Household member identities.

The family is a closed set: three children and two parents. Every person has a
stable Latin key used throughout the service, a display name as the family
writes it, and any aliases found in older task rows.
"""

from enum import StrEnum

from pydantic import BaseModel, Field


class PersonCategory(StrEnum):
    """Whether a household member is a child or a parent."""

    CHILD = "child"
    PARENT = "parent"


class Person(BaseModel):
    """A recognized household member."""

    key: str = Field(..., description="Stable lowercase identifier (e.g. 'amit')")
    display_name: str = Field(..., description="Name as shown in the app")
    category: PersonCategory
    aliases: tuple[str, ...] = Field(default=(), description="Alternate spellings accepted on input")


PEOPLE: tuple[Person, ...] = (
    Person(key="ravid", display_name="רביד", category=PersonCategory.CHILD),
    Person(key="amit", display_name="עמית", category=PersonCategory.CHILD),
    Person(key="alin", display_name="אלין", category=PersonCategory.CHILD),
    Person(key="sivan", display_name="סיוון", category=PersonCategory.PARENT),
    Person(key="roi", display_name="רועי", category=PersonCategory.PARENT),
)

_BY_KEY: dict[str, Person] = {person.key: person for person in PEOPLE}

_BY_ALIAS: dict[str, Person] = {}
for _person in PEOPLE:
    for _alias in (_person.key, _person.display_name, *_person.aliases):
        _BY_ALIAS[_alias.strip().lower()] = _person

CHILD_KEYS: frozenset[str] = frozenset(p.key for p in PEOPLE if p.category is PersonCategory.CHILD)
PARENT_KEYS: frozenset[str] = frozenset(p.key for p in PEOPLE if p.category is PersonCategory.PARENT)


def lookup_person(value: str | None) -> Person | None:
    """Find a person by key, display name, or alias (case-insensitive)."""
    if not value:
        return None
    return _BY_ALIAS.get(value.strip().lower())


def get_person(key: str) -> Person:
    """Return the person with the given key.

    Raises:
        KeyError: If the key is not a known household member
    """
    return _BY_KEY[key]


def is_child(key: str | None) -> bool:
    return key in CHILD_KEYS


def is_parent(key: str | None) -> bool:
    return key in PARENT_KEYS
