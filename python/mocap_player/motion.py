"""
Motion: an ordered sequence of Frames sampled at a fixed frame rate.

Provides BVH/AMC motion I/O, playback cursor handling, reorientation of the
root trajectory and sub-range copy operations.
"""

import logging
from typing import List, Optional, TextIO

import numpy as np

from .amc_parser import AMCParser
from .amc_writer import AMCWriter
from .bvh_parser import BVHParser
from .bvh_writer import BVHWriter
from .config import DEFAULT_FPS
from .data_structs import Frame
from .errors import MocapParseError
from .skeleton import Skeleton
from .transform import Transform

logger = logging.getLogger(__name__)


class Motion:
    """Contains all motion data"""

    def __init__(self, fps: float = 0.0, name: str = "None"):
        self.frames: List[Frame] = []
        self.name = name
        self.fps = fps
        self._current = 0

    def __len__(self):
        return len(self.frames)

    def __repr__(self):
        return f"Motion(name={self.name!r}, frames={len(self.frames)}, fps={self.fps})"

    @property
    def num_frames(self) -> int:
        return len(self.frames)

    @property
    def num_joints(self) -> int:
        if not self.frames:
            return 0
        return self.frames[0].num_joints

    @property
    def duration(self) -> float:
        """Length in seconds"""
        return len(self.frames) / self.fps if self.fps else 0.0

    @property
    def current_index(self) -> int:
        return self._current

    @current_index.setter
    def current_index(self, index: int):
        self._current = max(0, min(len(self.frames) - 1, index))

    def set_current_index(self, index: int):
        self.current_index = index

    @property
    def current_frame(self) -> Frame:
        return self.get_frame(self._current)

    def get_frame(self, index: int) -> Frame:
        if not 0 <= index < len(self.frames):
            raise IndexError(f"frame {index} out of range [0, {len(self.frames)})")
        return self.frames[index]

    def set_frame(self, index: int, frame: Frame):
        self.get_frame(index)
        self.frames[index] = frame.copy()

    def frame_time(self, index: int) -> float:
        return index / self.fps if self.fps else 0.0

    def clear(self):
        self.frames = []
        self._current = 0
        self.name = "None"
        self.fps = 0.0

    def copy(self) -> "Motion":
        motion = Motion(self.fps, self.name)
        motion.frames = [frame.copy() for frame in self.frames]
        motion._current = self._current
        return motion

    def append_frame(self, frame: Frame):
        self.frames.append(frame.copy())

    def append(self, motion: "Motion"):
        for frame in motion.frames:
            self.append_frame(frame)

    def _clamp_range(self, start: int, end: int):
        start = max(0, start)
        end = min(len(self.frames), end)
        return start, max(start, end)

    def sub_motion(self, start: int, end: int) -> "Motion":
        """Copy of frames [start, end), clamped to the motion; keeps fps"""
        start, end = self._clamp_range(start, end)
        motion = Motion(self.fps)
        for index in range(start, end):
            motion.append_frame(self.frames[index])
        return motion

    def set_sub_motion(self, start: int, end: int, motion: "Motion"):
        """Overwrite frames [start, end) with the first frames of `motion`"""
        start, end = self._clamp_range(start, end)
        if end - start > motion.num_frames:
            raise ValueError(f"range [{start}, {end}) needs {end - start} frames, motion has {motion.num_frames}")
        for offset, index in enumerate(range(start, end)):
            self.frames[index] = motion.frames[offset].copy()

    def reorient(self, start_position, start_orientation):
        """
        Move the root trajectory so that frame 0 starts at the given pose.

        Every frame's root pose T becomes T_desired * T_first^-1 * T; all
        other joint rotations are unchanged.
        """
        if not self.frames:
            return

        desired = Transform(start_position, start_orientation)
        first = self.frames[0]
        delta = desired * Transform(first.root_translation, first.rotations[0]).inverse()

        for frame in self.frames:
            key = delta * Transform(frame.root_translation, frame.rotations[0])
            frame.set_root_translation(key.translation)
            frame.set_joint_rotation(0, key.rotation)

    @staticmethod
    def prune_name(path: str) -> str:
        """Strip directory and extension: 'data/walk.bvh' -> 'walk'"""
        base = path.replace("\\", "/").rsplit("/", 1)[-1]
        stem, dot, _ = base.rpartition(".")
        return stem if dot else base

    def load_bvh(self, stream: TextIO, skeleton: Skeleton, path: Optional[str] = None) -> bool:
        """
        Read the MOTION section from a stream positioned after the hierarchy.

        Returns:
            False (with the motion cleared) on malformed content
        """
        self.clear()
        try:
            frames, fps = BVHParser(stream, path).parse_motion(skeleton)
        except MocapParseError as e:
            logger.warning("Could not read BVH motion: %s", e)
            return False
        self.frames = frames
        self.fps = fps
        if path:
            self.name = path
        return True

    def load_amc(self, path: str, skeleton: Skeleton, fps: float = DEFAULT_FPS) -> bool:
        """
        Load an AMC file for a skeleton read from the matching ASF file.

        Header directives update the skeleton (root rotation order, foot
        DOFs) once the file has parsed.

        Returns:
            False when the file cannot be read or is malformed; the motion
            is cleared and the skeleton untouched
        """
        self.clear()
        parser = AMCParser(skeleton)
        try:
            frames, _ = parser.parse(path)
        except (OSError, MocapParseError) as e:
            logger.warning("Could not load AMC file %s: %s", path, e)
            return False

        parser.apply_header()
        self.frames = frames
        self.fps = fps
        self.name = str(path)
        return True

    def save_bvh(self, stream: TextIO, skeleton: Skeleton, precision: int = 6):
        """Write the MOTION section"""
        BVHWriter(skeleton, precision).write_motion(stream, self)

    def save_amc(self, path: str, skeleton: Skeleton, precision: int = 6) -> bool:
        try:
            with open(path, 'w') as f:
                AMCWriter(skeleton, precision).write(f, self)
        except OSError as e:
            logger.warning("Could not open %s for writing: %s", path, e)
            return False
        return True

    def root_trajectory(self) -> np.ndarray:
        """(frames, 3) array of root translations"""
        if not self.frames:
            return np.zeros((0, 3))
        return np.array([frame.root_translation for frame in self.frames])
