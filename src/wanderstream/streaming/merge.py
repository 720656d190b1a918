"""Identity-aware merging of streamed item collections.

Points of interest, hotels and restaurants are first generated without a
database id (the all-zero placeholder UUID) and may later arrive again with
one assigned. Items are therefore keyed by real UUID when they have one and
by normalized name otherwise, so the upgraded item replaces its earlier
version instead of duplicating it.
"""

import re
import uuid
from itertools import chain
from typing import Any, Dict, List, Optional

PLACEHOLDER_ID = "00000000-0000-0000-0000-000000000000"

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def is_real_id(value: Any) -> bool:
    """True for a canonical UUID string other than the placeholder."""
    return (
        isinstance(value, str)
        and value != PLACEHOLDER_ID
        and _UUID_PATTERN.match(value) is not None
    )


def normalize_name(name: Any) -> str:
    """Lower-case ``name`` and drop everything but ``[a-z0-9]``."""
    if not isinstance(name, str):
        return ""
    return _NON_ALNUM.sub("", name.lower())


def item_key(item: Any) -> str:
    """Derive the identity key used to deduplicate ``item``.

    Args:
        item: A mapping or object with ``id``/``name`` and optionally
            ``llm_interaction_id``.

    Returns:
        The real id, else the normalized name, else the interaction id,
        else a random key that never collides.
    """
    item_id = _field(item, "id")
    if is_real_id(item_id):
        return item_id

    name_key = normalize_name(_field(item, "name"))
    if name_key:
        return name_key

    interaction_id = _field(item, "llm_interaction_id")
    if interaction_id:
        return str(interaction_id)

    return uuid.uuid4().hex


def merge_unique_by_id(
    previous: Optional[List[Any]] = None, new: Optional[List[Any]] = None
) -> List[Any]:
    """Merge two collections keyed by item identity.

    Newer items replace older ones with the same key; the result keeps the
    order in which keys were first seen across ``previous`` then ``new``.

    Args:
        previous: Items already held.
        new: Items just received.

    Returns:
        The merged list.
    """
    merged: Dict[str, Any] = {}
    for item in chain(previous or [], new or []):
        key = item_key(item)
        if key not in merged and is_real_id(_field(item, "id")):
            # Same entity seen earlier under its name, before it had an id
            name_key = normalize_name(_field(item, "name"))
            if name_key in merged:
                merged = {
                    (key if k == name_key else k): (item if k == name_key else v)
                    for k, v in merged.items()
                }
                continue
        merged[key] = item
    return list(merged.values())
