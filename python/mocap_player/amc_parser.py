"""
AMC (Acclaim Motion Capture) parser.

Parses AMC motion files into Frames for a skeleton read from the matching
ASF file. Header directives (:ROOT_XXX, :FOOT_3DOF) change the skeleton;
they are collected first and only applied once the whole file has parsed.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import DOF, MOCAP_SCALE, RAD2DEG, RotationOrder
from .data_structs import Frame, Joint
from .errors import MocapParseError
from .rot_converter import RotationConverter
from .skeleton import Skeleton

logger = logging.getLogger(__name__)

FOOT_JOINTS = ("lfoot", "rfoot")


@dataclass
class AMCHeader:
    """Directives read from the AMC header"""
    root_order: Optional[RotationOrder] = None
    foot_3dof: bool = False
    fully_specified: bool = False
    degrees: bool = True


class AMCParser:
    """Parser for AMC (Acclaim Motion Capture) files"""

    def __init__(self, skeleton: Skeleton):
        """
        Initialize parser with skeleton reference.

        Args:
            skeleton: Skeleton object containing joint definitions
        """
        self.skeleton = skeleton
        self.header = AMCHeader()
        self.path: Optional[str] = None

    def parse(self, filepath: str) -> Tuple[List[Frame], AMCHeader]:
        """
        Parse an AMC file.

        Args:
            filepath: Path to the AMC file

        Returns:
            (frames, header); the skeleton is not modified

        Raises:
            OSError: if the file cannot be read
            MocapParseError: on a malformed frame line
        """
        self.path = str(filepath)
        self.header = AMCHeader()
        with open(filepath, 'r') as f:
            lines = f.read().splitlines()

        frames: List[Frame] = []
        current_frame = None
        skipping = False
        unknown = set()
        in_header = True

        for number, line in enumerate(lines, 1):
            line = line.strip()

            if not line or line.startswith('#'):
                continue

            if line.startswith(':'):
                if in_header:
                    self._parse_directive(line)
                    if line.split()[0] == ':DEGREES':
                        in_header = False
                continue

            if line.isdigit():
                in_header = False
                current_frame = Frame(len(self.skeleton.joints))
                frames.append(current_frame)
                skipping = False
                continue

            if current_frame is None:
                raise MocapParseError("joint data before the first frame index", self.path, number)
            if skipping:
                continue

            parts = line.split()
            joint = self.skeleton.get_joint_by_name(parts[0])
            if joint is None:
                if parts[0] not in unknown:
                    logger.warning("%s:%d: unknown joint %r, skipping rest of frame", self.path, number, parts[0])
                    unknown.add(parts[0])
                skipping = True
                continue

            self._parse_joint_data(joint, parts[1:], current_frame, number)

        return frames, self.header

    def _parse_directive(self, line: str):
        keyword = line.split()[0].upper()
        if keyword.startswith(':ROOT_'):
            try:
                self.header.root_order = RotationOrder.parse(keyword)
            except ValueError:
                logger.warning("%s: ignoring unknown directive %s", self.path, keyword)
        elif keyword == ':FOOT_3DOF':
            self.header.foot_3dof = True
        elif keyword == ':FULLY-SPECIFIED':
            self.header.fully_specified = True
        elif keyword == ':DEGREES':
            self.header.degrees = True
        elif keyword == ':RADIANS':
            self.header.degrees = False

    def _dofs(self, joint: Joint) -> DOF:
        if self.header.foot_3dof and joint.name in FOOT_JOINTS:
            return DOF.ALL
        return joint.dofs

    def _parse_joint_data(self, joint: Joint, tokens: List[str], frame: Frame, number: int):
        """
        Parse joint data from a line.

        The root line carries tx ty tz rx ry rz, composed in the root's
        order; every other joint lists its active DOFs in X, Y, Z order,
        composed as ZYX.
        """
        try:
            values = [float(x) for x in tokens]
        except ValueError:
            raise MocapParseError(f"non-numeric value for joint {joint.name}", self.path, number)

        unit = 1.0 if self.header.degrees else RAD2DEG

        if joint is self.skeleton.root:
            if len(values) < 6:
                raise MocapParseError("root line needs tx ty tz rx ry rz", self.path, number)
            order = self.header.root_order or joint.rotation_order
            frame.set_root_translation([v * MOCAP_SCALE for v in values[:3]])
            angles = [v * unit for v in values[3:6]]
            frame.set_joint_rotation(joint.id, RotationConverter.xyz_to_matrix(angles, order))
            return

        dofs = self._dofs(joint)
        if len(values) < len(dofs.axes()):
            raise MocapParseError(f"joint {joint.name} needs {len(dofs.axes())} values", self.path, number)
        angles = RotationConverter.expand_dofs([v * unit for v in values], dofs)
        frame.set_joint_rotation(joint.id, RotationConverter.xyz_to_matrix(angles, RotationOrder.ZYX))

    def apply_header(self):
        """Apply the parsed directives to the skeleton"""
        if self.header.root_order is not None and self.skeleton.root is not None:
            self.skeleton.root.rotation_order = self.header.root_order
        if self.header.foot_3dof:
            for name in FOOT_JOINTS:
                joint = self.skeleton.get_joint_by_name(name)
                if joint is not None:
                    joint.dofs = DOF.ALL
