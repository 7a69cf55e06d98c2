"""
Configuration and constants for motion-capture playback and conversion.

Contains unit constants shared by the codecs, rotation order and convention
definitions, the DOF bitmask and the conversion configuration options.
"""

from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Sequence

import numpy as np


# ASF/AMC length units to the BVH units used by the player
MOCAP_SCALE = 0.05644444

# Bind-pose BVH root translation to mesh units
INCH_2_CM = 2.5

# Size of the joint tables handed to the skinning shader
MAX_JOINTS = 30

DEFAULT_FPS = 120.0

# Gimbal-lock threshold (radians) used by the Euler decompositions
EPSILON = 0.001

DEG2RAD = np.pi / 180.0
RAD2DEG = 180.0 / np.pi


class RotationOrder(Enum):
    """Euler rotation orders; R = R_first * R_middle * R_last"""
    XYZ = "xyz"
    XZY = "xzy"
    YXZ = "yxz"
    YZX = "yzx"
    ZXY = "zxy"
    ZYX = "zyx"

    @property
    def axes(self) -> tuple:
        """Axis indices (0=X, 1=Y, 2=Z) in composition order"""
        return tuple("xyz".index(c) for c in self.value)

    @property
    def channels(self) -> str:
        """BVH channel names, e.g. 'Zrotation Xrotation Yrotation'"""
        return " ".join(f"{c.upper()}rotation" for c in self.value)

    @classmethod
    def from_channels(cls, channels: Sequence[str]) -> "RotationOrder":
        """
        Derive the order from BVH channel names.

        Position channels are ignored; the remaining three rotation
        channels define the order.

        Raises:
            ValueError: if the rotation channels do not name three distinct axes
        """
        letters = "".join(c[0].lower() for c in channels if c.lower().endswith("rotation"))
        return cls(letters)

    @classmethod
    def parse(cls, text: str) -> "RotationOrder":
        """Accept 'zxy', 'ZXY', 'Zrotation Xrotation Yrotation' or ':ROOT_ZXY'"""
        text = text.strip()
        if text.upper().startswith(":ROOT_"):
            text = text[6:]
        if "rotation" in text.lower():
            return cls.from_channels(text.split())
        return cls(text.lower())


class Convention(Enum):
    """How a joint's local rotation relates to the authored frame value"""
    BVH = "bvh"
    AMC = "amc"


class DOF(IntFlag):
    """Rotational degrees of freedom; a cleared bit forces that angle to zero"""
    NONE = 0
    X = 0x1
    Y = 0x10
    Z = 0x100
    ALL = X | Y | Z

    @classmethod
    def from_tokens(cls, tokens: Sequence[str]) -> "DOF":
        """Build a mask from ASF 'dof' tokens such as ['rx', 'rz']"""
        mask = cls.NONE
        for token in tokens:
            token = token.lower()
            if token == "rx":
                mask |= cls.X
            elif token == "ry":
                mask |= cls.Y
            elif token == "rz":
                mask |= cls.Z
        return mask

    def axes(self) -> list:
        """Active axis indices in X, Y, Z order"""
        return [i for i, bit in enumerate((DOF.X, DOF.Y, DOF.Z)) if self & bit]


@dataclass
class ConversionConfig:
    """Configuration for the ASF/AMC to BVH conversion tools"""
    # Frame rate given to AMC motions (AMC files carry none)
    fps: float = DEFAULT_FPS

    # Re-run FK on both skeletons and compare poses after converting
    verify: bool = False

    # Maximum position deviation accepted by the verification
    tolerance: float = 1e-4

    # Decimal places in written channel values
    precision: int = 6
