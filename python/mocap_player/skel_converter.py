"""
Skeleton conversion from the AMC convention to the BVH convention.

An AMC joint sits at the end of its own bone (its local translation is its
rotated bone vector), while a BVH joint sits at the end of its parent's bone
and carries its rest rotation in every frame. Converting therefore shifts
every bone translation down one level, adds an end site under each leaf to
hold the last bone, and rebakes each frame through the axis rotations.
"""

import logging
from typing import List

import numpy as np

from .config import Convention
from .data_structs import Frame, Joint
from .rot_converter import RotationConverter

logger = logging.getLogger(__name__)


class SkeletonConverter:
    """Converts an ASF/AMC skeleton and its motion to BVH form in place"""

    def __init__(self, skeleton):
        self.skeleton = skeleton
        self.original_count = len(skeleton.joints)

    def convert(self, motion=None) -> List[Joint]:
        """
        Convert the skeleton, and the motion when given.

        Returns:
            The end-site joints added under the former leaves
        """
        self.original_count = len(self.skeleton.joints)
        self.skeleton.convention = Convention.BVH
        if self.skeleton.root is not None:
            self.skeleton.root.convention = Convention.BVH

        sites = []
        for leaf in self.skeleton.leaves():
            sites.append(self._add_end_site(leaf))
            self._shift_translations(leaf)

        if motion is not None:
            self.convert_motion(motion)

        logger.debug("Converted skeleton: %d joints, %d end sites added", len(self.skeleton.joints), len(sites))
        return sites

    def _add_end_site(self, leaf: Joint) -> Joint:
        site = Joint("Site")
        site.convention = Convention.BVH
        site.local.rotation = np.eye(3)
        site.local.translation = leaf.bone_translation.copy()
        site.channel_count = 3
        self.skeleton.add_joint(site)
        Joint.attach(leaf, site)
        site.update_transformation()
        return site

    def _shift_translations(self, leaf: Joint):
        """From the leaf up to the root: each joint takes its parent's bone"""
        joint = leaf
        while joint.parent is not None:
            joint.convention = Convention.BVH
            if joint.parent is self.skeleton.root:
                joint.local.translation = np.zeros(3)
            else:
                joint.local.translation = joint.parent.bone_translation.copy()
            joint = joint.parent

    def convert_frame(self, frame: Frame) -> Frame:
        """Rebake one frame; added joints get the identity rotation"""
        converted = Frame(len(self.skeleton.joints))
        converted.set_root_translation(frame.root_translation)
        for joint in self.skeleton.joints:
            if joint.id < min(self.original_count, frame.num_joints):
                rotation = RotationConverter.to_parent_frame(frame.rotations[joint.id], joint.axis_rotation)
                converted.set_joint_rotation(joint.id, rotation)
        return converted

    def convert_motion(self, motion):
        for index, frame in enumerate(motion.frames):
            motion.frames[index] = self.convert_frame(frame)
