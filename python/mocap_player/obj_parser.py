"""
Wavefront OBJ geometry parser.

Reads positions (v), texture coordinates (vt), normals (vn) and faces (f)
into a MeshGeometry. Several files can be parsed into the same geometry;
face indices are offset by the element counts of the files read before.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from .errors import MocapParseError

logger = logging.getLogger(__name__)

# (position, uv, normal) indices; -1 when absent
FaceVertex = Tuple[int, int, int]


@dataclass
class MeshGeometry:
    """Vertex data and faces bucketed by arity"""
    vertices: List[List[float]] = field(default_factory=list)
    uvs: List[List[float]] = field(default_factory=list)
    normals: List[List[float]] = field(default_factory=list)
    tris: List[List[FaceVertex]] = field(default_factory=list)
    quads: List[List[FaceVertex]] = field(default_factory=list)
    polys: List[List[FaceVertex]] = field(default_factory=list)

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)

    def bounds(self):
        """(min, max) of the vertex positions, None when empty"""
        if not self.vertices:
            return None
        positions = np.asarray(self.vertices, dtype=float)
        return positions.min(axis=0), positions.max(axis=0)

    def clear(self):
        for items in (self.vertices, self.uvs, self.normals, self.tris, self.quads, self.polys):
            items.clear()


class OBJParser:
    """Parser for OBJ files"""

    def __init__(self, geometry: MeshGeometry = None):
        self.geometry = geometry or MeshGeometry()
        self.path = None

    def parse(self, filepath: str) -> MeshGeometry:
        """
        Parse an OBJ file, appending to the geometry.

        Args:
            filepath: Path to the OBJ file

        Returns:
            The (shared) geometry

        Raises:
            OSError: if the file cannot be read
            MocapParseError: on a malformed element
        """
        self.path = str(filepath)
        g = self.geometry
        offsets = (len(g.vertices), len(g.uvs), len(g.normals))

        with open(filepath, 'r') as f:
            for number, line in enumerate(f, 1):
                parts = line.split()
                if not parts or parts[0].startswith('#'):
                    continue
                keyword = parts[0]
                try:
                    if keyword == 'v':
                        g.vertices.append([float(x) for x in parts[1:4]])
                    elif keyword == 'vt':
                        g.uvs.append([float(x) for x in parts[1:3]])
                    elif keyword == 'vn':
                        g.normals.append([float(x) for x in parts[1:4]])
                    elif keyword == 'f':
                        self._parse_face(parts[1:], offsets)
                except ValueError as e:
                    raise MocapParseError(str(e), self.path, number)

        logger.debug("Parsed %s: %d vertices, %d tris, %d quads, %d polys",
                     self.path, len(g.vertices), len(g.tris), len(g.quads), len(g.polys))
        return g

    def _parse_face(self, tokens: List[str], offsets):
        counts = (len(self.geometry.vertices), len(self.geometry.uvs), len(self.geometry.normals))
        face = [self._parse_face_vertex(token, offsets, counts) for token in tokens]
        if len(face) == 3:
            self.geometry.tris.append(face)
        elif len(face) == 4:
            self.geometry.quads.append(face)
        else:
            self.geometry.polys.append(face)

    @staticmethod
    def _parse_face_vertex(token: str, offsets, counts) -> FaceVertex:
        """'v', 'v/vt', 'v//vn' or 'v/vt/vn'; 1-based, negative counts from the end"""
        fields = token.split('/')
        indices = []
        for slot in range(3):
            text = fields[slot] if slot < len(fields) else ''
            if not text:
                indices.append(-1)
                continue
            value = int(text)
            if value < 0:
                indices.append(counts[slot] + value)
            else:
                indices.append(value - 1 + offsets[slot])
        if indices[0] < 0:
            raise ValueError(f"face vertex without a position: {token!r}")
        return tuple(indices)
