"""
Plan rendering and persistence helpers.

- visualization: the box-drawing tree behind ``LazyFrame.describe_plan``; shared
  sub-plans print once and are marked on later visits
- serialization: versioned JSON for whole plans. Source nodes carry their table as
  ``{name, dtype, values}`` column records, so a deserialized plan collects without
  the original DataFrame. Plans holding a ``map`` expression serialize but cannot be
  read back.
"""

from .serialization import (
    SERIALIZATION_VERSION,
    deserialize,
    from_json,
    serialize,
    to_json,
)
from .visualization import visualize

__all__ = [
    'visualize',
    'serialize',
    'deserialize',
    'to_json',
    'from_json',
    'SERIALIZATION_VERSION',
]
