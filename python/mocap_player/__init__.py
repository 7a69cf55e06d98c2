"""
Motion capture player package

Reads, writes and plays back BVH and ASF/AMC motion capture data:
- Skeleton / Joint hierarchy with forward kinematics under both conventions
- Motion as a sequence of per-joint rotation frames
- Player facade for loading, saving and AMC to BVH conversion
- SkeletonMesh linear-blend skinning of OBJ geometry
"""

from .config import (
    ConversionConfig,
    Convention,
    DEFAULT_FPS,
    DOF,
    INCH_2_CM,
    MAX_JOINTS,
    MOCAP_SCALE,
    RotationOrder,
)
from .errors import MocapError, MocapParseError
from .quat_math import QuaternionMath
from .transform import Transform
from .data_structs import Joint, Frame
from .skeleton import Skeleton
from .rot_converter import RotationConverter
from .bvh_parser import BVHParser
from .bvh_writer import BVHWriter
from .asf_parser import ASFParser
from .amc_parser import AMCParser, AMCHeader
from .amc_writer import AMCWriter
from .motion import Motion
from .skel_converter import SkeletonConverter
from .player import Player
from .obj_parser import OBJParser, MeshGeometry
from .skeleton_mesh import SkeletonMesh
# Note: main module not imported here to avoid RuntimeWarning when running as -m

__version__ = "1.0.0"

__all__ = [
    # Configuration
    'ConversionConfig',
    'Convention',
    'DEFAULT_FPS',
    'DOF',
    'INCH_2_CM',
    'MAX_JOINTS',
    'MOCAP_SCALE',
    'RotationOrder',

    # Errors
    'MocapError',
    'MocapParseError',

    # Math
    'QuaternionMath',
    'Transform',
    'RotationConverter',

    # Data structures
    'Joint',
    'Frame',
    'Skeleton',
    'Motion',

    # Codecs
    'BVHParser',
    'BVHWriter',
    'ASFParser',
    'AMCParser',
    'AMCHeader',
    'AMCWriter',
    'OBJParser',
    'MeshGeometry',

    # Playback
    'SkeletonConverter',
    'Player',
    'SkeletonMesh',
]
