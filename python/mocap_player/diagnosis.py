#!/usr/bin/env python3
"""
Conversion diagnostic - compare an ASF/AMC motion with its BVH conversion.

The converted skeleton must render the same pose in every frame:
1. Every original joint keeps its global rotation
2. A converted joint sits where its parent sat before conversion
3. Each added end site sits at the former leaf
"""

import argparse
import logging
from dataclasses import dataclass, field
from typing import Dict

import numpy as np
from scipy.spatial.transform import Rotation as R

from .config import DEFAULT_FPS, RAD2DEG
from .errors import MocapError
from .main import setup_logging
from .player import Player

logger = logging.getLogger(__name__)


@dataclass
class ConversionDiagnosis:
    """Worst-case deviations between the source and the converted motion"""
    num_frames: int = 0
    max_rotation_error_deg: float = 0.0
    max_position_error: float = 0.0
    worst_joint: str = ""
    worst_frame: int = -1
    per_joint_rotation_deg: Dict[str, float] = field(default_factory=dict)

    def passed(self, rotation_tol_deg: float = 1e-3, position_tol: float = 1e-4) -> bool:
        return (self.max_rotation_error_deg <= rotation_tol_deg
                and self.max_position_error <= position_tol)


def rotation_angle_deg(a: np.ndarray, b: np.ndarray) -> float:
    """Angle of the relative rotation a^T b in degrees"""
    return float(R.from_matrix(a.T @ b).magnitude() * RAD2DEG)


def compare_conversion(asf_path: str, amc_path: str, fps: float = DEFAULT_FPS) -> ConversionDiagnosis:
    """
    Load an ASF/AMC pair, convert a copy to BVH form and compare every frame.

    Raises:
        MocapError: if the files cannot be loaded
    """
    source = Player()
    if not source.load_asf_amc(asf_path, amc_path, fps):
        raise MocapError(f"cannot load {asf_path} / {amc_path}")

    converted = Player(source.skeleton.copy(), source.motion.copy())
    converted.convert_amc_to_bvh()

    original = len(source.skeleton.joints)
    result = ConversionDiagnosis(num_frames=source.motion.num_frames)

    for index in range(source.motion.num_frames):
        source.update(index)
        converted.update(index)
        for joint in converted.skeleton.joints:
            if joint.id < original:
                before = source.skeleton.get_joint_by_id(joint.id)
                angle = rotation_angle_deg(before.global_transform.rotation, joint.global_transform.rotation)
                result.per_joint_rotation_deg[joint.name] = max(
                    result.per_joint_rotation_deg.get(joint.name, 0.0), angle)
                if angle > result.max_rotation_error_deg:
                    result.max_rotation_error_deg = angle
                    result.worst_joint = joint.name
                    result.worst_frame = index
                anchor = before.parent
            else:
                anchor = source.skeleton.get_joint_by_id(joint.parent.id)

            if anchor is None:
                continue
            distance = float(np.linalg.norm(joint.global_transform.translation
                                             - anchor.global_transform.translation))
            result.max_position_error = max(result.max_position_error, distance)

    return result


def main(argv=None):
    parser = argparse.ArgumentParser(description='Compare an ASF/AMC motion with its BVH conversion')
    parser.add_argument('asf', help='Input ASF skeleton file')
    parser.add_argument('amc', help='Input AMC motion file')
    parser.add_argument('-f', '--fps', type=float, default=DEFAULT_FPS, help='Frames per second (default: 120)')
    parser.add_argument('--top', type=int, default=5, help='Number of joints to list (default: 5)')
    args = parser.parse_args(argv)
    setup_logging()

    diagnosis = compare_conversion(args.asf, args.amc, args.fps)
    logger.info("Frames compared: %d", diagnosis.num_frames)
    logger.info("Max rotation error: %.6f deg (%s, frame %d)",
                diagnosis.max_rotation_error_deg, diagnosis.worst_joint, diagnosis.worst_frame)
    logger.info("Max position error: %.6g", diagnosis.max_position_error)

    ranked = sorted(diagnosis.per_joint_rotation_deg.items(), key=lambda item: -item[1])
    for name, angle in ranked[:args.top]:
        logger.info("  %-16s %.6f deg", name, angle)
    logger.info("Result: %s", "PASS" if diagnosis.passed() else "FAIL")


if __name__ == '__main__':
    main()
