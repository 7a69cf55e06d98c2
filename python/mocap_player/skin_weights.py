"""
Per-vertex skin weight tables.

A weights file has a header `vertex:joint1:joint2:...` followed by one row
per vertex whose colon-separated fields line up with the header columns.
Each vertex keeps at most four influences, renormalised to sum to one.
"""

import logging
from typing import Dict, List, Tuple

import numpy as np

from .errors import MocapParseError

logger = logging.getLogger(__name__)

MAX_INFLUENCES = 4


def read_weight_table(filepath: str) -> Tuple[List[str], np.ndarray]:
    """
    Read a weights file.

    Returns:
        (joint names, weights array of shape (vertices, joints))

    Raises:
        OSError: if the file cannot be read
        MocapParseError: on a missing header or a non-numeric weight
    """
    names: List[str] = []
    rows: List[List[float]] = []

    with open(filepath, 'r') as f:
        for number, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            fields = line.split(':')
            if fields[0].startswith('vertex'):
                names = [name.strip() for name in fields[1:] if name.strip()]
                continue
            if not names:
                raise MocapParseError("weights row before the header", str(filepath), number)

            # fields[0] is the vertex column
            values = [v.strip() for v in fields[1:]][:len(names)]
            try:
                row = [float(v) if v else 0.0 for v in values]
            except ValueError:
                raise MocapParseError("non-numeric weight", str(filepath), number)
            row.extend([0.0] * (len(names) - len(row)))
            rows.append(row)

    if not names:
        raise MocapParseError("missing 'vertex:...' header", str(filepath))
    return names, np.array(rows, dtype=float).reshape(len(rows), len(names))


def select_influences(candidates: List[Tuple[int, float]]) -> Tuple[List[int], List[float]]:
    """
    Reduce (joint id, weight) pairs to at most four influences.

    The smallest weight is dropped until four remain; the survivors are
    renormalised and padded with (0, 0.0).
    """
    joints = [j for j, _ in candidates]
    weights = [w for _, w in candidates]

    while len(joints) > MAX_INFLUENCES:
        k = weights.index(min(weights))
        del weights[k]
        del joints[k]

    total = sum(weights)
    if total > 0:
        weights = [w / total for w in weights]

    padding = MAX_INFLUENCES - len(joints)
    return joints + [0] * padding, weights + [0.0] * padding


def compute_vertex_influences(names: List[str], table: np.ndarray, joint_ids: Dict[str, int]):
    """
    Per-vertex joint indices and weights for a skeleton.

    Args:
        names: Joint names of the table columns
        table: (vertices, joints) weights
        joint_ids: Skeleton joint name -> id

    Returns:
        (indices int32 (vertices, 4), weights float32 (vertices, 4))
    """
    column = {name: i for i, name in enumerate(names)}
    # Skeleton joints in id order that appear in the table
    used = [(jid, column[name]) for name, jid in sorted(joint_ids.items(), key=lambda item: item[1])
            if name in column]

    indices = np.zeros((len(table), MAX_INFLUENCES), dtype=np.int32)
    weights = np.zeros((len(table), MAX_INFLUENCES), dtype=np.float32)
    trimmed = 0
    for v, row in enumerate(table):
        candidates = [(jid, row[col]) for jid, col in used if row[col] > 0.0]
        if len(candidates) > MAX_INFLUENCES:
            trimmed += 1
        indices[v], weights[v] = select_influences(candidates)

    if trimmed:
        logger.debug("%d vertices had more than %d influences", trimmed, MAX_INFLUENCES)
    return indices, weights
