"""Audience resolution: who a task is addressed to, and which devices receive it."""

from famsched.domain.people import PEOPLE, is_child, is_parent, lookup_person
from famsched.domain.subscription import Subscription


def resolve_audience(raw_child: str | None) -> frozenset[str]:
    """Decode a task's recipient encoding into the set of person keys it addresses.

    Combined encodings are split on underscores ("amit_alin"); each token is
    looked up by key, display name or alias. Display names embedded anywhere in
    the raw value are also picked up, so free-text entries like "רביד ועמית"
    still resolve. Empty or unrecognized input yields an empty set.
    """
    if not raw_child or not raw_child.strip():
        return frozenset()

    keys: set[str] = set()
    for token in raw_child.strip().split("_"):
        person = lookup_person(token)
        if person is not None:
            keys.add(person.key)

    for person in PEOPLE:
        if person.display_name in raw_child:
            keys.add(person.key)

    return frozenset(keys)


def subscription_receives_task(
    subscription: Subscription,
    audience: frozenset[str],
    *,
    empty_watch_receives_all: bool = True,
    strict_child_only: bool = False,
) -> bool:
    """Decide whether a subscription belongs to a task's audience.

    Args:
        subscription: The registered device
        audience: Person keys resolved from the task's recipient encoding
        empty_watch_receives_all: Parents with no watched children receive everything
        strict_child_only: Only devices owned by an addressed child receive the task

    Returns:
        True if the device should be considered for this task's reminder
    """
    if not audience:
        return False

    owner = subscription.user_name
    if strict_child_only:
        return is_child(owner) and owner in audience

    if owner is None:
        return True

    if is_child(owner):
        return owner in audience

    if is_parent(owner):
        if subscription.receive_all or owner in audience:
            return True
        if not subscription.watch_children:
            return empty_watch_receives_all
        return any(child in audience for child in subscription.watch_children)

    return False
