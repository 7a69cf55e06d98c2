"""
Skeleton hierarchy and forward kinematics.

A Skeleton owns its joints (ids dense from 0, root first), applies poses
read from Frames and runs forward kinematics from the root.
"""

import logging
from typing import Iterator, List, Optional, TextIO

import numpy as np

from .config import Convention
from .data_structs import Frame, Joint

logger = logging.getLogger(__name__)


class Skeleton:
    """Represents the complete skeleton structure"""

    def __init__(self):
        self.joints: List[Joint] = []
        self.root: Optional[Joint] = None
        self.scale = 1.0
        self.convention = Convention.BVH

    def __len__(self):
        return len(self.joints)

    def __repr__(self):
        root = self.root.name if self.root else None
        return f"Skeleton(root={root!r}, joints={len(self.joints)}, convention={self.convention.value})"

    @property
    def num_joints(self) -> int:
        return len(self.joints)

    @property
    def is_amc(self) -> bool:
        return self.convention is Convention.AMC

    def clear(self):
        self.root = None
        self.joints = []

    def copy(self) -> "Skeleton":
        """
        Deep copy.

        Every joint is copied first; parent and child links are then wired
        by id so the copy shares nothing with the original.
        """
        skeleton = Skeleton()
        skeleton.scale = self.scale
        skeleton.convention = self.convention
        skeleton.joints = [joint.copy() for joint in self.joints]

        for original, joint in zip(self.joints, skeleton.joints):
            if original.parent is not None:
                joint.parent = skeleton.joints[original.parent.id]
            else:
                skeleton.root = joint
            joint.children = [skeleton.joints[child.id] for child in original.children]
        return skeleton

    def add_joint(self, joint: Joint, is_root: bool = False):
        joint.id = len(self.joints)
        self.joints.append(joint)
        if is_root:
            self.root = joint

    def get_joint_by_name(self, name: str) -> Optional[Joint]:
        for joint in self.joints:
            if joint.name == name:
                return joint
        return None

    def get_joint_by_id(self, joint_id: int) -> Optional[Joint]:
        if 0 <= joint_id < len(self.joints):
            return self.joints[joint_id]
        return None

    def iter_depth_first(self, joint: Optional[Joint] = None) -> Iterator[Joint]:
        """Joints in hierarchy (declaration) order"""
        joint = joint or self.root
        if joint is None:
            return
        yield joint
        for child in joint.children:
            yield from self.iter_depth_first(child)

    def leaves(self) -> List[Joint]:
        return [joint for joint in self.joints if not joint.children]

    def read_from_frame(self, frame: Frame) -> bool:
        """
        Pose the skeleton from a frame and run forward kinematics.

        Returns:
            False (and leaves the skeleton untouched) when the frame was
            recorded for a different number of joints
        """
        if self.root is None or frame.num_joints != len(self.joints):
            logger.error("Cannot read pose from frame: %d joints in frame, %d in skeleton",
                         frame.num_joints, len(self.joints))
            return False

        self.root.set_local_translation(frame.root_translation * self.scale)
        for joint in self.joints:
            joint.set_local_rotation(frame.rotations[joint.id])

        self.update_fk()
        return True

    def write_to_frame(self, frame: Frame):
        """Store the current pose (as authored rotations) in `frame`"""
        frame.set_root_translation(self.root.local.translation / self.scale)
        frame.set_num_joints(len(self.joints))
        for joint in self.joints:
            frame.set_joint_rotation(joint.id, joint.authored_rotation())

    def update_fk(self, joint: Optional[Joint] = None):
        """Forward kinematics from `joint` (default: the root)"""
        joint = joint or self.root
        if joint is None:
            return
        joint.update_transformation(True)

    def get_bounds(self):
        """(min, max) corners of the global joint positions"""
        self.update_fk()
        if not self.joints:
            return np.zeros(3), np.zeros(3)
        positions = np.array([joint.global_transform.translation for joint in self.joints])
        return positions.min(axis=0), positions.max(axis=0)

    def get_dimensions(self) -> np.ndarray:
        lower, upper = self.get_bounds()
        return upper - lower

    def set_scale(self, scale: float):
        """
        Scale bone lengths.

        AMC joints scale their bone translation, BVH joints their local
        translation. Setting the current scale again is a no-op.
        """
        if scale == self.scale:
            return
        self.scale = scale
        for joint in self.joints:
            if self.is_amc:
                joint.bone_translation = joint.bone_translation * scale
            else:
                joint.set_local_translation(joint.local.translation * scale)

    def validate(self) -> List[str]:
        """Check the structural invariants; returns a list of problems"""
        problems = []
        for index, joint in enumerate(self.joints):
            if joint.id != index:
                problems.append(f"{joint.name}: id {joint.id} at index {index}")
            if joint.parent is not None and joint not in joint.parent.children:
                problems.append(f"{joint.name}: missing from parent's children")
            for child in joint.children:
                if child.parent is not joint:
                    problems.append(f"{child.name}: parent link does not match {joint.name}")
            if joint.channel_count == 0 and joint.children:
                problems.append(f"{joint.name}: site with children")

        if self.joints:
            if self.root is None or self.root.parent is not None:
                problems.append("root missing or has a parent")
            elif self.root.id != 0:
                problems.append("root id is not 0")
            reachable = list(self.iter_depth_first())
            if len(reachable) != len(self.joints) or len(set(map(id, reachable))) != len(reachable):
                problems.append("hierarchy is not a tree spanning all joints")
        return problems

    @staticmethod
    def from_bvh(path: str) -> "Skeleton":
        """Read the hierarchy of a BVH file"""
        from .bvh_parser import BVHParser

        with open(path, "r") as f:
            return BVHParser(f, path).parse_hierarchy()

    @staticmethod
    def from_asf(path: str) -> "Skeleton":
        from .asf_parser import ASFParser

        return ASFParser().parse(path)

    def save_bvh(self, stream: TextIO):
        """Write the HIERARCHY section"""
        from .bvh_writer import BVHWriter

        BVHWriter(self).write_hierarchy(stream)
