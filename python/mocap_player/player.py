"""
Player: binds a Skeleton to a Motion.

Dispatches loading and saving for both file formats, applies frames to the
skeleton and converts ASF/AMC data to BVH form.
"""

import logging
from typing import Optional

from .asf_parser import ASFParser
from .bvh_parser import BVHParser
from .bvh_writer import BVHWriter
from .config import DEFAULT_FPS
from .errors import MocapParseError
from .motion import Motion
from .skel_converter import SkeletonConverter
from .skeleton import Skeleton

logger = logging.getLogger(__name__)


class Player:
    """
    Facade over a Skeleton and a Motion.

    Every load parses into fresh objects and only replaces the current
    skeleton/motion on success, so a failed load leaves the player as it was.
    """

    def __init__(self, skeleton: Optional[Skeleton] = None, motion: Optional[Motion] = None):
        self.skeleton = skeleton or Skeleton()
        self.motion = motion or Motion()

    def __repr__(self):
        return f"Player({self.skeleton!r}, {self.motion!r})"

    def is_valid(self) -> bool:
        return len(self.skeleton.joints) > 0 and self.motion.num_frames > 0

    def update(self, frame_index: Optional[int] = None) -> bool:
        """Pose the skeleton from a frame (default: the current frame)"""
        if not self.is_valid():
            return False
        if frame_index is None:
            frame = self.motion.current_frame
        else:
            frame = self.motion.get_frame(frame_index)
        return self.skeleton.read_from_frame(frame)

    def _rewind(self):
        self.motion.current_index = 0
        if self.motion.num_frames > 0:
            self.skeleton.read_from_frame(self.motion.current_frame)

    def load_bvh(self, filename: str) -> bool:
        try:
            with open(filename, 'r') as f:
                parser = BVHParser(f, str(filename))
        except OSError as e:
            logger.warning("Could not open %s: %s", filename, e)
            return False

        try:
            skeleton = parser.parse_hierarchy()
            frames, fps = parser.parse_motion(skeleton)
        except MocapParseError as e:
            logger.warning("Could not load BVH file: %s", e)
            return False

        motion = Motion(fps, str(filename))
        motion.frames = frames
        self.skeleton = skeleton
        self.motion = motion
        self._rewind()
        logger.info("Loaded %s: %d joints, %d frames at %.1f fps",
                    filename, len(skeleton.joints), motion.num_frames, fps)
        return True

    def load_asf(self, filename: str) -> bool:
        try:
            skeleton = ASFParser().parse(filename)
        except (OSError, MocapParseError) as e:
            logger.warning("Could not load ASF file %s: %s", filename, e)
            return False

        self.skeleton = skeleton
        self.motion = Motion()
        logger.info("Loaded %s: %d joints", filename, len(skeleton.joints))
        return True

    def load_amc(self, filename: str, fps: float = DEFAULT_FPS) -> bool:
        """Load motion for the current (ASF) skeleton"""
        if not self.skeleton.joints:
            logger.warning("Load an ASF file before loading an AMC file")
            return False

        motion = Motion()
        if not motion.load_amc(filename, self.skeleton, fps):
            return False

        self.motion = motion
        self._rewind()
        logger.info("Loaded %s: %d frames at %.1f fps", filename, motion.num_frames, fps)
        return True

    def load_asf_amc(self, asf_filename: str, amc_filename: str, fps: float = DEFAULT_FPS) -> bool:
        return self.load_asf(asf_filename) and self.load_amc(amc_filename, fps)

    def save_bvh(self, filename: str, precision: int = 6) -> bool:
        if self.skeleton.root is None:
            logger.warning("Nothing to save to %s", filename)
            return False
        try:
            with open(filename, 'w') as f:
                BVHWriter(self.skeleton, precision).write(f, self.motion)
        except OSError as e:
            logger.warning("Could not open %s for writing: %s", filename, e)
            return False
        return True

    def save_amc(self, filename: str, precision: int = 6) -> bool:
        if self.skeleton.root is None:
            logger.warning("Nothing to save to %s", filename)
            return False
        return self.motion.save_amc(filename, self.skeleton, precision)

    def convert_amc_to_bvh(self):
        """
        Convert the loaded ASF/AMC skeleton and motion to BVH form.

        End sites are added under every leaf, translations move one level
        down the hierarchy and every frame is rebaked through the axis
        rotations. The rendered pose of every frame is preserved.
        """
        SkeletonConverter(self.skeleton).convert(self.motion)
        if self.is_valid():
            self.update()
