"""
BVH (BioVision Hierarchy) file writer.

Writes skeleton and motion data to BVH format. Every rotation is written
with ZXY channels; the root and any joint parsed with six channels also
carry a translation (a non-root joint writes its offset there).
"""

from typing import List, Optional, TextIO

import numpy as np

from .config import DEFAULT_FPS, RotationOrder
from .data_structs import Frame, Joint
from .rot_converter import RotationConverter

ROOT_CHANNELS = "Xposition Yposition Zposition Zrotation Xrotation Yrotation"
JOINT_CHANNELS = RotationOrder.ZXY.channels


class BVHWriter:
    """Writer for BVH files"""

    def __init__(self, skeleton, precision: int = 6):
        self.skeleton = skeleton
        self.precision = precision

    def write(self, stream: TextIO, motion):
        """Write a complete BVH file (hierarchy + motion)"""
        self.write_hierarchy(stream)
        self.write_motion(stream, motion)

    def write_hierarchy(self, stream: TextIO):
        root = self.skeleton.root
        stream.write("HIERARCHY\n")
        stream.write(f"ROOT {root.name}\n")
        stream.write("{\n")
        stream.write("\tOFFSET 0.00 0.00 0.00\n")
        stream.write(f"\tCHANNELS 6 {ROOT_CHANNELS}\n")
        for child in root.children:
            self._write_joint(stream, child, 1)
        stream.write("}\n")

    def _offset(self, joint: Joint) -> np.ndarray:
        if self.skeleton.is_amc:
            return joint.bone_translation
        return joint.local.translation

    def _write_joint(self, stream: TextIO, joint: Joint, depth: int):
        """Write a joint and its children"""
        indent = "\t" * depth
        offset = self._offset(joint)
        p = self.precision

        if joint.channel_count > 0:
            stream.write(f"{indent}JOINT {joint.name}\n")
            stream.write(f"{indent}{{\n")
            stream.write(f"{indent}\tOFFSET {offset[0]:.{p}f} {offset[1]:.{p}f} {offset[2]:.{p}f}\n")
            if joint.channel_count == 6:
                stream.write(f"{indent}\tCHANNELS 6 {ROOT_CHANNELS}\n")
            else:
                stream.write(f"{indent}\tCHANNELS 3 {JOINT_CHANNELS}\n")
        else:
            stream.write(f"{indent}End Site\n")
            stream.write(f"{indent}{{\n")
            stream.write(f"{indent}\tOFFSET {offset[0]:.{p}f} {offset[1]:.{p}f} {offset[2]:.{p}f}\n")

        for child in joint.children:
            self._write_joint(stream, child, depth + 1)
        stream.write(f"{indent}}}\n")

    def write_motion(self, stream: TextIO, motion):
        stream.write("MOTION\n")
        stream.write(f"Frames: {motion.num_frames}\n")
        fps = motion.fps or DEFAULT_FPS
        stream.write(f"Frame Time: {1.0 / fps:.6g}\n")

        order = list(self.skeleton.iter_depth_first())
        scratch = self.skeleton.copy() if self.skeleton.is_amc else None
        for frame in motion.frames:
            stream.write(self.format_frame(frame, order, scratch))
            stream.write("\n")

    def format_frame(self, frame: Frame, order: Optional[List[Joint]] = None, scratch=None) -> str:
        """
        Format one frame line.

        Under the AMC convention the frame is applied to a scratch copy of
        the skeleton and its local rotations (already in the parent frame)
        are written instead of the authored ones.

        Args:
            frame: Frame to write
            order: Joints in hierarchy order (default: computed)
            scratch: Reusable skeleton copy for AMC skeletons
        """
        if order is None:
            order = list(self.skeleton.iter_depth_first())

        if self.skeleton.is_amc:
            scratch = scratch or self.skeleton.copy()
            scratch.read_from_frame(frame)
            rotations = [joint.local.rotation for joint in scratch.joints]
        else:
            rotations = frame.rotations

        p = self.precision
        values = [f"{v:.{p}f}" for v in frame.root_translation]
        for joint in order:
            if joint.channel_count == 0:
                continue
            if joint.channel_count == 6 and joint.parent is not None:
                values.extend(f"{v:.{p}f}" for v in self._offset(joint))
            angles = RotationConverter.matrix_to_channels(rotations[joint.id], RotationOrder.ZXY)
            values.extend(f"{v:.{p}f}" for v in angles)
        return "\t".join(values)
