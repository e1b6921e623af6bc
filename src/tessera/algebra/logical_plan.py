"""
Logical plan representation for lazy queries.

The LogicalPlan class wraps the root operation of an algebra tree and provides
methods for introspection, serialization, and debugging. Nodes may be shared between
branches, so the tree is really a DAG rooted at the final result.
"""

from typing import Any, Dict

from ..exceptions import PlanValidationError
from .operations import Operation


class LogicalPlan:
    """Logical plan for lazy table operations.

    Attributes:
        root: The root operation of the plan (final result)

    Example:
        >>> source = Source(df=df)
        >>> filtered = Filter(predicate=col("a") > 10, input=source)
        >>> plan = LogicalPlan(Select(exprs=[col("a")], input=filtered))
        >>> print(plan.explain())
    """

    def __init__(self, root: Operation):
        if not isinstance(root, Operation):
            raise PlanValidationError(f"Plan root must be an Operation, got {type(root).__name__}")
        self._root = root

    @property
    def root(self) -> Operation:
        """Get the root operation of the plan."""
        return self._root

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the plan to a dictionary.

        Returns the root operation's dict directly so ``plan.to_dict()["type"]``
        gives the root operation type.
        """
        return self._root.to_dict()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogicalPlan":
        """Deserialize a plan from a dictionary.

        Accepts either a wrapped ``{"root": ...}`` dict or the root operation
        dict directly (must have a ``"type"`` key).
        """
        if "root" in data:
            root = Operation.from_dict(data["root"])
        elif "type" in data:
            root = Operation.from_dict(data)
        else:
            raise PlanValidationError("Plan dict must have 'root' or 'type' key")
        return cls(root)

    def explain(self) -> str:
        """Render the operation tree, root first, one node per line."""
        from ..utils.visualization import visualize

        return visualize(self)

    def copy(self) -> "LogicalPlan":
        """Create a shallow copy of the plan; operations are immutable and shared."""
        return LogicalPlan(self._root)

    def __repr__(self) -> str:
        return f"LogicalPlan(root={self._root.__class__.__name__})"

    def __str__(self) -> str:
        return self.explain()
