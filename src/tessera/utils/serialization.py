"""
Plan serialization utilities.

Provides JSON serialization and deserialization for logical plans. The serialized
format includes versioning for forward compatibility. Source tables are embedded
column by column. A user function (``Expression.map``) is recorded by name only,
so plans holding one serialize but cannot be deserialized.
"""

import json
from typing import Any, Dict

from ..algebra.logical_plan import LogicalPlan
from ..algebra.operations import Operation
from ..exceptions import PlanValidationError

# Current serialization format version
SERIALIZATION_VERSION = "1.0"


def serialize(plan: LogicalPlan) -> Dict[str, Any]:
    """Serialize a logical plan to a JSON-serializable dictionary.

    The serialized format includes:
    - version: Format version string for forward compatibility
    - root: The root operation serialized as a nested dictionary

    Args:
        plan: The logical plan to serialize

    Returns:
        Dictionary that can be serialized to JSON

    Raises:
        TypeError: If plan is not a LogicalPlan instance
    """
    if not isinstance(plan, LogicalPlan):
        raise TypeError(f"Expected LogicalPlan, got {type(plan)}")

    return {
        "version": SERIALIZATION_VERSION,
        "root": plan.root.to_dict(),
    }


def deserialize(data: Dict[str, Any]) -> LogicalPlan:
    """Deserialize a logical plan from a dictionary.

    Args:
        data: Dictionary containing serialized plan data

    Returns:
        Reconstructed LogicalPlan instance

    Raises:
        PlanValidationError: If data is missing required fields or has invalid structure
        TypeError: If data is not a dictionary
    """
    if not isinstance(data, dict):
        raise TypeError(f"Expected dict, got {type(data)}")

    if "version" not in data:
        raise PlanValidationError("Serialized plan must have 'version' field")
    if "root" not in data:
        raise PlanValidationError("Serialized plan must have 'root' field")

    version = data["version"]
    if version != SERIALIZATION_VERSION:
        raise PlanValidationError(
            f"Unsupported serialization version: {version}. "
            f"Expected {SERIALIZATION_VERSION}"
        )

    try:
        root = Operation.from_dict(data["root"])
    except KeyError as e:
        raise PlanValidationError(f"Missing required field in operation: {e}") from e

    return LogicalPlan(root)


def to_json(plan: LogicalPlan, **kwargs) -> str:
    """Serialize a logical plan to a JSON string.

    Args:
        plan: The logical plan to serialize
        **kwargs: Additional arguments to pass to json.dumps (e.g., indent=2)

    Returns:
        JSON string representation of the plan
    """
    data = serialize(plan)
    return json.dumps(data, **kwargs)


def from_json(json_str: str) -> LogicalPlan:
    """Deserialize a logical plan from a JSON string.

    Raises:
        TypeError: If json_str is not a string
        PlanValidationError: If the JSON is malformed or the plan structure is invalid
    """
    if not isinstance(json_str, str):
        raise TypeError(f"Expected str, got {type(json_str)}")

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise PlanValidationError(f"Invalid JSON: {e}") from e

    return deserialize(data)
