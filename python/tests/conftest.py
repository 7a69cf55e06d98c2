"""
Shared fixtures: small BVH, ASF/AMC, OBJ and weights files written to tmp_path.
"""

import numpy as np
import pytest

import matplotlib

matplotlib.use("Agg")


BVH_HIERARCHY = """\
HIERARCHY
ROOT Hips
{
\tOFFSET 0.00 0.00 0.00
\tCHANNELS 6 Xposition Yposition Zposition Zrotation Xrotation Yrotation
\tJOINT Chest
\t{
\t\tOFFSET 0.0 5.0 0.0
\t\tCHANNELS 3 Zrotation Xrotation Yrotation
\t\tJOINT Head
\t\t{
\t\t\tOFFSET 0.0 4.0 0.0
\t\t\tCHANNELS 3 Zrotation Xrotation Yrotation
\t\t\tEnd Site
\t\t\t{
\t\t\t\tOFFSET 0.0 2.0 0.0
\t\t\t}
\t\t}
\t}
\tJOINT LeftHip
\t{
\t\tOFFSET 2.0 0.0 0.0
\t\tCHANNELS 3 Zrotation Xrotation Yrotation
\t}
}
"""

# Hips, Chest, Head, Site3, LeftHip
BVH_JOINTS = 5
BVH_CHANNELS = 15


def bvh_motion_rows(num_frames, seed=0):
    rng = np.random.default_rng(seed)
    rows = []
    for _ in range(num_frames):
        translation = rng.uniform(-10.0, 10.0, 3)
        angles = rng.uniform(-60.0, 60.0, BVH_CHANNELS - 3)
        rows.append(np.concatenate([translation, angles]))
    return rows


def bvh_text(rows, frame_time=1.0 / 120.0):
    lines = [BVH_HIERARCHY.rstrip("\n"), "MOTION", f"Frames: {len(rows)}", f"Frame Time: {frame_time:.6f}"]
    lines.extend(" ".join(f"{v:.6f}" for v in row) for row in rows)
    return "\n".join(lines) + "\n"


@pytest.fixture
def bvh_file(tmp_path):
    """10-frame, 5-joint BVH file"""
    path = tmp_path / "sample.bvh"
    path.write_text(bvh_text(bvh_motion_rows(10)))
    return path


@pytest.fixture
def bind_pose_file(tmp_path):
    """Same hierarchy, a single all-zero frame"""
    path = tmp_path / "bind_pose.bvh"
    path.write_text(bvh_text([np.zeros(BVH_CHANNELS)]))
    return path


SINGLE_BONE_ASF = """\
# AST/ASF file generated for tests
:version 1.10
:name single
:units
  mass 1.0
  length 0.45
  angle deg
:documentation
  one bone
:root
   order TX TY TZ RX RY RZ
   axis XYZ
   position 0 0 0
   orientation 0 0 0
:bonedata
  begin
     id 1
     name lfemur
     direction 1 0 0
     length 10
     axis 0 0 0  XYZ
    dof rx ry rz
    limits (-160.0 20.0)
           (-70.0 70.0)
           (-60.0 70.0)
  end
:hierarchy
  begin
    root lfemur
  end
"""

CHAIN_ASF = """\
# AST/ASF file generated for tests
:version 1.10
:name chain
:units
  mass 1.0
  length 0.45
  angle deg
:root
   order TX TY TZ RX RY RZ
   axis XYZ
   position 0 0 0
   orientation 0 0 0
:bonedata
  begin
     id 1
     name lfemur
     direction 0.34 -0.94 0
     length 7.5
     axis 0 0 20  XYZ
    dof rx ry rz
    limits (-160.0 20.0)
           (-70.0 70.0)
           (-60.0 70.0)
  end
  begin
     id 2
     name ltibia
     direction 0.34 -0.94 0
     length 7.0
     axis 0 0 20  XYZ
    dof rx
    limits (-10.0 170.0)
  end
  begin
     id 3
     name lfoot
     direction 0 -0.3 0.95
     length 2.2
     axis -90 7 20  XYZ
    dof rx rz
    limits (-45.0 90.0)
           (-70.0 20.0)
  end
  begin
     id 4
     name lowerback
     direction 0 1 0
     length 2.0
     axis 0 0 0  XYZ
    dof rx ry rz
    limits (-20.0 45.0)
           (-30.0 30.0)
           (-30.0 30.0)
  end
  begin
     id 5
     name head
     direction 0.1 0.99 0
     length 1.5
     axis 10 0 -5  XYZ
    dof rx ry rz
    limits (-180 180)
           (-180 180)
           (-180 180)
  end
:hierarchy
  begin
    root lfemur lowerback
    lfemur ltibia
    ltibia lfoot
    lowerback head
  end
"""


def chain_amc_text(num_frames, seed=1):
    rng = np.random.default_rng(seed)
    lines = ["#!OML:ASF chain.asf", ":FULLY-SPECIFIED", ":DEGREES"]
    for index in range(1, num_frames + 1):
        lines.append(str(index))
        root = list(rng.uniform(-20.0, 20.0, 3)) + list(rng.uniform(-40.0, 40.0, 3))
        lines.append("root " + " ".join(f"{v:.4f}" for v in root))
        lines.append("lfemur " + " ".join(f"{v:.4f}" for v in rng.uniform(-40.0, 40.0, 3)))
        lines.append(f"ltibia {rng.uniform(0.0, 90.0):.4f}")
        lines.append("lfoot " + " ".join(f"{v:.4f}" for v in rng.uniform(-30.0, 30.0, 2)))
        lines.append("lowerback " + " ".join(f"{v:.4f}" for v in rng.uniform(-20.0, 20.0, 3)))
        lines.append("head " + " ".join(f"{v:.4f}" for v in rng.uniform(-30.0, 30.0, 3)))
    return "\n".join(lines) + "\n"


@pytest.fixture
def single_bone_asf(tmp_path):
    path = tmp_path / "single.asf"
    path.write_text(SINGLE_BONE_ASF)
    return path


@pytest.fixture
def single_bone_amc(tmp_path):
    """One frame: root at the origin, lfemur rotated 90 degrees about Z"""
    path = tmp_path / "single.amc"
    path.write_text(":FULLY-SPECIFIED\n:DEGREES\n1\nroot 0 0 0 0 0 0\nlfemur 0 0 90\n")
    return path


@pytest.fixture
def chain_asf(tmp_path):
    path = tmp_path / "chain.asf"
    path.write_text(CHAIN_ASF)
    return path


@pytest.fixture
def chain_amc(tmp_path):
    """6 frames for the chain skeleton"""
    path = tmp_path / "chain.amc"
    path.write_text(chain_amc_text(6))
    return path


OBJ_TEXT = """\
# unit quad plus a triangle
v 0.0 0.0 0.0
v 1.0 0.0 0.0
v 1.0 1.0 0.0
v 0.0 1.0 1.0
vt 0.0 0.0
vt 1.0 0.0
vt 1.0 1.0
vt 0.0 1.0
vn 0.0 0.0 1.0
f 1/1/1 2/2/1 3/3/1 4/4/1
f 1//1 2//1 4//1
"""

WEIGHTS_TEXT = """\
vertex:Hips:Chest:Head:LeftHip
0:1.0:0.0:0.0:0.0
1:0.5:0.5:0.0:0.0
2:0.0:0.0:1.0:0.0
3:0.25:0.25:0.25:0.25
"""


@pytest.fixture
def obj_file(tmp_path):
    path = tmp_path / "mesh.obj"
    path.write_text(OBJ_TEXT)
    return path


@pytest.fixture
def weights_file(tmp_path):
    path = tmp_path / "mesh_weights.txt"
    path.write_text(WEIGHTS_TEXT)
    return path
