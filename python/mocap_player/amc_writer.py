"""
AMC (Acclaim Motion Capture) file writer.
"""

from typing import TextIO

from .config import DOF, MOCAP_SCALE, RotationOrder
from .data_structs import Frame
from .rot_converter import RotationConverter


class AMCWriter:
    """Writes motion frames as a fully specified AMC file in degrees"""

    def __init__(self, skeleton, precision: int = 6):
        self.skeleton = skeleton
        self.precision = precision

    def write(self, stream: TextIO, motion):
        root = self.skeleton.root
        stream.write("#Unknown ASF file\n")
        stream.write(f":ROOT_{root.rotation_order.value.upper()}\n")

        foot = self.skeleton.get_joint_by_name("lfoot")
        if foot is not None and foot.dofs == DOF.ALL:
            stream.write(":FOOT_3DOF\n")
        stream.write(":FULLY-SPECIFIED\n")
        stream.write(":DEGREES\n")

        for index, frame in enumerate(motion.frames, 1):
            stream.write(f"{index}\n")
            self._write_frame(stream, frame)

    def _write_frame(self, stream: TextIO, frame: Frame):
        root = self.skeleton.root
        p = self.precision

        position = frame.root_translation / MOCAP_SCALE
        angles = RotationConverter.matrix_to_xyz(frame.rotations[root.id], root.rotation_order)
        values = " ".join(f"{v:.{p}f}" for v in list(position) + list(angles))
        stream.write(f"{root.name} {values}\n")

        for joint in self.skeleton.joints:
            if joint is root or joint.dofs == DOF.NONE:
                continue
            angles = RotationConverter.matrix_to_xyz(frame.rotations[joint.id], RotationOrder.ZYX)
            values = RotationConverter.mask_dofs(angles, joint.dofs)
            stream.write(joint.name + "".join(f" {v:.{p}f}" for v in values) + "\n")
