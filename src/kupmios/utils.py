"""
Asset unit helpers.

A unit is a policy id (28 byte hash, 56 hex characters) followed by the
hex encoded asset name. The indexer separates the two with a dot.
"""

from typing import Optional, Tuple

POLICY_ID_LENGTH = 56
UNIT_SEPARATOR = "."


def split_unit(unit: str) -> Tuple[str, Optional[str]]:
    """
    Split a unit into its policy id and asset name.

    Returns:
        Tuple of policy id and asset name, the name being None when empty

    Raises:
        ValueError: If the unit is shorter than a policy id
    """
    if len(unit) < POLICY_ID_LENGTH:
        raise ValueError(f"Invalid unit: {unit}")
    policy_id = unit[:POLICY_ID_LENGTH]
    asset_name = unit[POLICY_ID_LENGTH:]
    return policy_id, asset_name or None


def to_unit(policy_id: str, asset_name: Optional[str] = None) -> str:
    """Join a policy id and asset name into a unit."""
    return policy_id + (asset_name or "")


def unit_from_indexer(key: str) -> str:
    """Convert an indexer ``policy.name`` asset key into a unit."""
    return key.replace(UNIT_SEPARATOR, "", 1)
