"""
Composition Helpers

Fingerprinting of composition inputs and descriptive naming of
compositions that arrive without a usable name.
"""

import hashlib
import json
from collections import OrderedDict
from typing import Any, Iterable, List, Mapping

from pydantic import ValidationError

from reconciler.models import ComponentSpec, CompositionDefinition

MAIN_COMPONENT_KEYWORDS = ["VASQUE", "SEAU", "SOBAG"]
MAX_LISTED_COMPONENTS = 3
MAX_NAME_LENGTH = 80


def _fingerprint_entry(composition: Any) -> Any:
    if isinstance(composition, CompositionDefinition):
        definition = composition
    elif isinstance(composition, Mapping):
        try:
            definition = CompositionDefinition.model_validate(composition)
        except ValidationError:
            # Rows the unifier will reject still count as input changes
            return {"raw": composition}
    else:
        return {"raw": composition}

    return {
        "id": definition.id,
        "name": definition.name,
        "components": definition.raw_components(),
    }


def composition_fingerprint(compositions: Iterable[Any]) -> str:
    """
    Digest of the ordered {id, name, raw components} of composition inputs.

    Only meant to detect that inputs changed since the last unification.
    Identical input order always yields the same value.
    """
    payload = [_fingerprint_entry(c) for c in compositions]
    serialized = json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def describe_composition(composition_id: str, components: List[ComponentSpec]) -> str:
    """
    Build a readable name from a composition's components.

    Main components (basins, buckets, bags) come first, followed by at most
    three others; quantities above one are shown as "x<n>".
    """
    if not components:
        return f"Composition {composition_id}"

    grouped: "OrderedDict[str, int]" = OrderedDict()
    for component in components:
        name = component.name.strip()
        grouped[name] = grouped.get(name, 0) + component.quantity

    def label(name: str, quantity: int) -> str:
        return f"{name} x{quantity}" if quantity > 1 else name

    def is_main(name: str) -> bool:
        return any(keyword in name.upper() for keyword in MAIN_COMPONENT_KEYWORDS)

    parts: List[str] = []
    main = [label(n, q) for n, q in grouped.items() if is_main(n)]
    if main:
        # Only the last main component is kept
        parts.append(main[-1])

    others = [label(n, q) for n, q in grouped.items() if not is_main(n)]
    if len(others) <= MAX_LISTED_COMPONENTS:
        parts.extend(others)
    else:
        parts.extend([others[0], others[1], f"et {len(others) - 2} autres"])

    full_name = " + ".join(parts)
    if len(full_name) > MAX_NAME_LENGTH:
        return full_name[: MAX_NAME_LENGTH - 3] + "..."
    return full_name
