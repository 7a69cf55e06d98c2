"""
BVH (BioVision Hierarchy) parser.

Parses the HIERARCHY section into a Skeleton and the MOTION section into
Frames. Joint ids follow declaration order, so frame channels are read
joint by joint in id order.
"""

import logging
from typing import List, Optional, TextIO, Tuple

import numpy as np

from .config import Convention, RotationOrder
from .data_structs import Frame, Joint
from .errors import MocapParseError
from .rot_converter import RotationConverter
from .skeleton import Skeleton

logger = logging.getLogger(__name__)


class BVHParser:
    """Parser for BVH files read from a text stream"""

    def __init__(self, stream: TextIO, path: Optional[str] = None):
        """
        Initialize parser over the remaining content of a stream.

        Args:
            stream: Text stream, positioned at HIERARCHY (or at MOTION when
                only the motion section is parsed)
            path: File name used in error messages
        """
        self.path = path or getattr(stream, "name", None)
        self.lines = stream.read().splitlines()
        self.index = 0

    def _error(self, message: str) -> MocapParseError:
        return MocapParseError(message, self.path, self.index)

    def _next_line(self) -> List[str]:
        """Tokens of the next non-blank line; raises at end of file"""
        while self.index < len(self.lines):
            tokens = self.lines[self.index].split()
            self.index += 1
            if tokens:
                return tokens
        raise self._error("unexpected end of file")

    def parse_hierarchy(self) -> Skeleton:
        """
        Parse the HIERARCHY section.

        Returns:
            Skeleton with BVH convention and FK run at the rest pose

        Raises:
            MocapParseError: on a missing keyword or unbalanced braces
        """
        skeleton = Skeleton()
        skeleton.convention = Convention.BVH

        if self._next_line() != ["HIERARCHY"]:
            raise self._error("expected HIERARCHY")

        tokens = self._next_line()
        if tokens[0] not in ("ROOT", "JOINT"):
            raise self._error(f"expected ROOT, got {tokens[0]!r}")
        root = self._parse_joint(skeleton, None, tokens)
        skeleton.root = root
        skeleton.update_fk()
        return skeleton

    def _parse_joint(self, skeleton: Skeleton, parent: Optional[Joint], header: List[str]) -> Joint:
        # The opening brace may end the header line
        inline_brace = header[-1] == "{"
        if inline_brace:
            header = header[:-1]
        is_end = header[0] == "End"
        name = " ".join(header[1:]) or "Site"

        joint = Joint(name)
        skeleton.add_joint(joint)
        Joint.attach(parent, joint)

        if not inline_brace and self._next_line() != ["{"]:
            raise self._error(f"expected '{{' after {header[0]} {name}")

        tokens = self._next_line()
        if tokens[0] != "OFFSET" or len(tokens) != 4:
            raise self._error(f"expected OFFSET x y z for {name}")
        joint.set_local_translation([self._float(t) for t in tokens[1:4]])

        if is_end:
            joint.channel_count = 0
            if self._next_line() != ["}"]:
                raise self._error(f"expected '}}' closing End Site of {parent.name if parent else name}")
            return joint

        tokens = self._next_line()
        if tokens[0] != "CHANNELS" or len(tokens) < 2:
            raise self._error(f"expected CHANNELS for {name}")
        count = self._int(tokens[1])
        channels = tokens[2:]
        if len(channels) != count:
            raise self._error(f"{name}: CHANNELS declares {count} channels, lists {len(channels)}")
        joint.channel_count = count
        if count:
            try:
                joint.rotation_order = RotationOrder.from_channels(channels)
            except ValueError:
                raise self._error(f"{name}: unsupported channel layout {' '.join(channels)}")

        tokens = self._next_line()
        while tokens != ["}"]:
            if tokens[0] not in ("JOINT", "End"):
                raise self._error(f"expected JOINT, End Site or '}}', got {tokens[0]!r}")
            self._parse_joint(skeleton, joint, tokens)
            tokens = self._next_line()
        return joint

    def parse_motion(self, skeleton: Skeleton) -> Tuple[List[Frame], float]:
        """
        Parse the MOTION section.

        Returns:
            (frames, fps)

        Raises:
            MocapParseError: when MOTION, Frames: or Frame Time: is missing
                or malformed
        """
        if self._next_line() != ["MOTION"]:
            raise self._error("expected MOTION")

        tokens = self._next_line()
        if tokens[0] != "Frames:" or len(tokens) != 2:
            raise self._error("expected 'Frames: N'")
        count = self._int(tokens[1])

        tokens = self._next_line()
        if tokens[:2] != ["Frame", "Time:"] or len(tokens) != 3:
            raise self._error("expected 'Frame Time: t'")
        frame_time = self._float(tokens[2])
        if frame_time <= 0:
            raise self._error(f"invalid frame time {frame_time}")

        values = []
        for line in self.lines[self.index:]:
            values.extend(line.split())
        self.index = len(self.lines)

        width = sum(j.channel_count for j in skeleton.joints if j.channel_count in (3, 6))
        available = len(values) // width if width else count
        if available < count:
            logger.warning("%s: header declares %d frames, data holds %d", self.path, count, available)
            count = available

        try:
            data = np.array(values[:count * width], dtype=float).reshape(count, width)
        except ValueError:
            raise self._error("non-numeric channel value in motion data")

        frames = [self._build_frame(skeleton, row) for row in data]
        return frames, 1.0 / frame_time

    @staticmethod
    def _build_frame(skeleton: Skeleton, row: np.ndarray) -> Frame:
        frame = Frame(len(skeleton.joints))
        cursor = 0
        for joint in skeleton.joints:
            rotation = np.zeros(3)
            if joint.channel_count == 6:
                if joint.id == 0:
                    frame.set_root_translation(row[cursor:cursor + 3])
                rotation = row[cursor + 3:cursor + 6]
                cursor += 6
            elif joint.channel_count == 3:
                rotation = row[cursor:cursor + 3]
                cursor += 3
            frame.set_joint_rotation(joint.id, RotationConverter.channels_to_matrix(rotation, joint.rotation_order))
        return frame

    def _float(self, token: str) -> float:
        try:
            return float(token)
        except ValueError:
            raise self._error(f"expected a number, got {token!r}")

    def _int(self, token: str) -> int:
        try:
            return int(token)
        except ValueError:
            raise self._error(f"expected an integer, got {token!r}")
