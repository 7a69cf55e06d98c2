"""
ASF (Acclaim Skeleton Format) parser.

Parses ASF skeleton files into Skeletons using the AMC convention: every
bone keeps its rest axis rotation and its bone translation
(direction * length * MOCAP_SCALE).
"""

import logging
from typing import List, Optional

import numpy as np

from .config import DEG2RAD, DOF, MOCAP_SCALE, Convention, RotationOrder
from .data_structs import Joint
from .errors import MocapParseError
from .rot_converter import RotationConverter
from .skeleton import Skeleton

logger = logging.getLogger(__name__)


class ASFParser:
    """Parser for ASF (Acclaim Skeleton Format) files"""

    def __init__(self):
        self.skeleton = Skeleton()
        self.path: Optional[str] = None
        self.lines: List[str] = []
        self.index = 0

    def parse(self, filepath: str) -> Skeleton:
        """
        Parse an ASF file.

        Args:
            filepath: Path to the ASF file

        Returns:
            Skeleton with complete hierarchy, FK run at the rest pose

        Raises:
            OSError: if the file cannot be read
            MocapParseError: on a malformed file
        """
        self.path = str(filepath)
        with open(filepath, 'r') as f:
            self.lines = f.read().splitlines()
        self.index = 0

        self.skeleton = Skeleton()
        self.skeleton.convention = Convention.AMC

        self._skip_to(":bonedata")
        root = Joint("root")
        root.channel_count = 6
        root.rotation_order = RotationOrder.ZYX
        root.convention = Convention.AMC
        self.skeleton.add_joint(root, is_root=True)

        tokens = self._next_tokens()
        while tokens and tokens[0] == "begin":
            self._parse_bone()
            tokens = self._next_tokens()

        if tokens is None or tokens[0] != ":hierarchy":
            self._skip_to(":hierarchy")
        self._parse_hierarchy()

        self.skeleton.update_fk()
        logger.debug("Parsed %s: %d joints", self.path, len(self.skeleton.joints))
        return self.skeleton

    def _error(self, message: str) -> MocapParseError:
        return MocapParseError(message, self.path, self.index)

    def _next_tokens(self) -> Optional[List[str]]:
        """Tokens of the next non-blank, non-comment line, None at EOF"""
        while self.index < len(self.lines):
            line = self.lines[self.index].strip()
            self.index += 1
            if line and not line.startswith('#'):
                return line.split()
        return None

    def _skip_to(self, keyword: str):
        tokens = self._next_tokens()
        while tokens is not None and tokens[0] != keyword:
            tokens = self._next_tokens()
        if tokens is None:
            raise self._error(f"missing {keyword} section")

    def _parse_bone(self):
        """Parse one begin ... end block of :bonedata"""
        name = None
        direction = np.zeros(3)
        length = 0.0
        axis_rotation = np.eye(3)
        dofs = DOF.NONE
        lower = np.full(3, -360.0 * DEG2RAD)
        upper = np.full(3, 360.0 * DEG2RAD)

        tokens = self._next_tokens()
        while tokens is not None and tokens[0] != "end":
            keyword = tokens[0]
            if keyword == "name":
                name = self._arguments(tokens, 1)[0]
            elif keyword == "direction":
                direction = np.array([self._float(t) for t in self._arguments(tokens, 3)])
            elif keyword == "length":
                length = self._float(self._arguments(tokens, 1)[0])
            elif keyword == "axis":
                # The trailing order token is ignored; axes compose as ZYX.
                angles = [self._float(t) for t in self._arguments(tokens, 3)]
                axis_rotation = RotationConverter.xyz_to_matrix(angles, RotationOrder.ZYX)
            elif keyword == "dof":
                self._arguments(tokens, 1)
                dofs = DOF.from_tokens(tokens[1:])
            elif keyword == "limits":
                self._parse_limits(tokens, dofs, lower, upper)
            tokens = self._next_tokens()

        if tokens is None:
            raise self._error("unterminated bone block")
        if name is None:
            raise self._error("bone block without a name")

        translation = direction * length * MOCAP_SCALE
        joint = Joint(name)
        joint.bone_translation = translation
        joint.local.translation = translation.copy()
        joint.axis_rotation = axis_rotation
        joint.channel_count = 3
        joint.rotation_order = RotationOrder.ZYX
        joint.dofs = dofs
        joint.lower_limits = lower
        joint.upper_limits = upper
        joint.convention = Convention.AMC
        self.skeleton.add_joint(joint)

    def _parse_limits(self, tokens: List[str], dofs: DOF, lower: np.ndarray, upper: np.ndarray):
        """One '(lo hi)' pair per active DOF, the first on the limits line"""
        pair = tokens[1:]
        for n, axis in enumerate(dofs.axes()):
            if n > 0:
                pair = self._next_tokens() or []
            values = " ".join(pair).replace("(", " ").replace(")", " ").split()
            if len(values) != 2:
                raise self._error("expected '(lower upper)' joint limits")
            lower[axis] = self._limit(values[0]) * DEG2RAD
            upper[axis] = self._limit(values[1]) * DEG2RAD

    def _limit(self, token: str) -> float:
        # Unbounded limits are written as 'inf'/'-inf'
        return float(token) if token.lower().lstrip('+-') == 'inf' else self._float(token)

    def _parse_hierarchy(self):
        tokens = self._next_tokens()
        if tokens != ["begin"]:
            raise self._error("expected 'begin' after :hierarchy")

        tokens = self._next_tokens()
        while tokens is not None and tokens[0] != "end":
            parent = self._lookup(tokens[0])
            for child_name in tokens[1:]:
                Joint.attach(parent, self._lookup(child_name))
            tokens = self._next_tokens()

        if tokens is None:
            raise self._error("unterminated :hierarchy section")

    def _lookup(self, name: str) -> Joint:
        joint = self.skeleton.get_joint_by_name(name)
        if joint is None:
            raise self._error(f"unknown joint {name!r} in hierarchy")
        return joint

    def _arguments(self, tokens: List[str], count: int) -> List[str]:
        """The first `count` values after the keyword"""
        if len(tokens) < count + 1:
            raise self._error(f"{tokens[0]!r} needs {count} value(s), got {len(tokens) - 1}")
        return tokens[1:count + 1]

    def _float(self, token: str) -> float:
        try:
            return float(token)
        except ValueError:
            raise self._error(f"expected a number, got {token!r}")
