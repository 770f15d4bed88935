"""Column mapping between experimental data channels and model entities.

Experimental tables rarely list their channels in model order, and often
carry extra channels or miss some. The column mapper resolves, once, which
source column feeds which model entity (coordinate, body, marker) by exact,
case-sensitive name equality. All per-frame work afterwards is index based.

Entities without a matching column receive the UNMATCHED sentinel (-1) and
are excluded from any objective that uses the map.
"""

import warnings
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np

from iktrack.errors import MappingFailure


UNMATCHED = -1


@dataclass(frozen=True, eq=False)
class ColumnMap:
    """Resolved correspondence entity -> source column.

    Attributes:
        entity_names: Model entity names, in model order.
        column_labels: Source column labels, in source order.
        indices: Source column index per entity, or UNMATCHED (-1).

    Example:
        >>> cmap = map_columns(["hip_flexion", "knee_angle"], ["knee_angle", "time_ms"])
        >>> cmap.as_dict()
        {'hip_flexion': -1, 'knee_angle': 0}
        >>> cmap.unmatched_entities
        ['hip_flexion']
    """

    entity_names: Tuple[str, ...]
    column_labels: Tuple[str, ...]
    indices: np.ndarray

    def __post_init__(self) -> None:
        """Validate index range and one-to-one matching."""
        if len(self.indices) != len(self.entity_names):
            raise ValueError(
                f"indices length {len(self.indices)} != "
                f"number of entities {len(self.entity_names)}"
            )
        n_cols = len(self.column_labels)
        matched = self.indices[self.indices != UNMATCHED]
        if np.any((matched < 0) | (matched >= n_cols)):
            raise ValueError(f"Column indices out of range [0, {n_cols})")
        if len(np.unique(matched)) != len(matched):
            raise ValueError("A source column may be matched to at most one entity")

    def __len__(self) -> int:
        return len(self.entity_names)

    @property
    def n_matched(self) -> int:
        """Number of entities with a source column."""
        return int(np.count_nonzero(self.indices != UNMATCHED))

    @property
    def is_fully_matched(self) -> bool:
        return self.n_matched == len(self.entity_names)

    @property
    def matched_entities(self) -> List[str]:
        return [name for name, idx in zip(self.entity_names, self.indices) if idx != UNMATCHED]

    @property
    def unmatched_entities(self) -> List[str]:
        return [name for name, idx in zip(self.entity_names, self.indices) if idx == UNMATCHED]

    @property
    def unused_columns(self) -> List[str]:
        """Source columns not consumed by any entity."""
        used = set(int(i) for i in self.indices if i != UNMATCHED)
        return [label for i, label in enumerate(self.column_labels) if i not in used]

    def index_of(self, entity_name: str) -> int:
        """Source column index for an entity (UNMATCHED if none)."""
        try:
            position = self.entity_names.index(entity_name)
        except ValueError:
            raise KeyError(f"Unknown entity '{entity_name}'") from None
        return int(self.indices[position])

    def matched_pairs(self) -> List[Tuple[int, int]]:
        """(entity index, column index) for every matched entity, in entity order."""
        return [
            (entity_idx, int(col_idx))
            for entity_idx, col_idx in enumerate(self.indices)
            if col_idx != UNMATCHED
        ]

    def as_dict(self) -> Dict[str, int]:
        return {name: int(idx) for name, idx in zip(self.entity_names, self.indices)}


def map_columns(
    entity_names: Sequence[str],
    column_labels: Sequence[str],
) -> ColumnMap:
    """
    Map model entities to source columns by exact name.

    For each entity, in entity order, record the index of the first column
    whose label equals the entity name, or UNMATCHED. Partial coverage is
    legal and never raises here; callers that need at least one match use
    require_matches().

    Args:
        entity_names: Model entity names (coordinates, bodies or markers).
        column_labels: Column labels of the experimental table.

    Returns:
        ColumnMap in entity order.

    Raises:
        ValueError: If entity names are not unique.
    """
    entity_names = tuple(entity_names)
    column_labels = tuple(column_labels)

    if len(set(entity_names)) != len(entity_names):
        raise ValueError(f"Entity names must be unique, got {entity_names}")

    first_index: Dict[str, int] = {}
    for i, label in enumerate(column_labels):
        if label in first_index:
            warnings.warn(
                f"Duplicate column label '{label}' at index {i}; "
                f"using the first occurrence at index {first_index[label]}.",
                UserWarning,
                stacklevel=2,
            )
            continue
        first_index[label] = i

    indices = np.array(
        [first_index.get(name, UNMATCHED) for name in entity_names],
        dtype=np.int64,
    )
    indices.flags.writeable = False

    return ColumnMap(
        entity_names=entity_names,
        column_labels=column_labels,
        indices=indices,
    )


def require_matches(column_map: ColumnMap, what: str = "channels") -> ColumnMap:
    """
    Ensure at least one entity was matched.

    Args:
        column_map: Map returned by map_columns().
        what: Kind of entity for the error message (e.g. "bodies").

    Returns:
        The same column map, for chaining.

    Raises:
        MappingFailure: If no entity matched any column.
    """
    if column_map.n_matched == 0:
        raise MappingFailure(
            what=what,
            entity_names=column_map.entity_names,
            column_labels=column_map.column_labels,
        )
    return column_map
