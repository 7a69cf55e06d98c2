"""
Exception types raised by the motion-capture codecs.
"""

from typing import Optional


class MocapError(Exception):
    """Base class for errors raised by mocap_player"""


class MocapParseError(MocapError, ValueError):
    """Raised when a BVH, ASF, AMC, OBJ or weights file is malformed"""

    def __init__(self, message: str, path: Optional[str] = None, line: Optional[int] = None):
        self.path = path
        self.line = line
        location = ""
        if path is not None:
            location = f"{path}:{line}: " if line is not None else f"{path}: "
        super().__init__(f"{location}{message}")
