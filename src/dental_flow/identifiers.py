"""Flow identifiers and storage keys.

A flow id is a canonical lowercase UUID.  The storage key is a pure function
of the flow family and the id, so identical ids in different families never
collide in the backing store::

    derive_key("renew", "0b7a...")   -> "renew-flow-0b7a..."
"""

import re
import uuid

from dental_flow.constants import FLOW_FAMILIES
from dental_flow.errors import InvalidIdentifierError

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


def new_flow_id() -> str:
    return str(uuid.uuid4())


def is_valid_id(raw_id: object) -> bool:
    return isinstance(raw_id, str) and _UUID_RE.fullmatch(raw_id) is not None


def context_for(flow_family: str) -> str:
    """Return the flow context (``intake`` / ``renewal``) of a family."""
    try:
        return FLOW_FAMILIES[flow_family]
    except KeyError:
        raise InvalidIdentifierError(f"Unknown flow family: {flow_family!r}") from None


def derive_key(flow_family: str, raw_id: object) -> str:
    """Validate *raw_id* and return the namespaced storage key.

    Raises ``InvalidIdentifierError`` for an unknown family or a malformed id.
    """
    context_for(flow_family)
    if not is_valid_id(raw_id):
        raise InvalidIdentifierError(f"Malformed flow id for family {flow_family}")
    return f"{flow_family}-flow-{raw_id}"
