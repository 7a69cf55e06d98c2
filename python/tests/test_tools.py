"""
test_tools.py - Command-line converters, batch pipeline, diagnosis and plots
"""

import json
import shutil

import numpy as np
import pytest

from mocap_player.batch_amc2bvh import BatchConverter, validate_bvh_file
from mocap_player.config import ConversionConfig
from mocap_player.diagnosis import compare_conversion, rotation_angle_deg
from mocap_player.errors import MocapError
from mocap_player.main import ASFAMCtoBVH
from mocap_player.main import main as amc2bvh_main
from mocap_player.player import Player
from mocap_player.quat_math import QuaternionMath
from mocap_player.truncate_mocap import find_asf, truncate_amc, truncate_bvh
from mocap_player import bvh_visualizer as viz

from conftest import bvh_motion_rows


# =============================================================================
# SINGLE CONVERSION
# =============================================================================

def test_converter_writes_verified_bvh(chain_asf, chain_amc, tmp_path):
    out = tmp_path / "chain.bvh"
    converter = ASFAMCtoBVH(ConversionConfig(fps=60.0, verify=True))
    assert converter.convert(str(chain_asf), str(chain_amc), str(out)) == str(out)

    player = Player()
    assert player.load_bvh(str(out))
    assert player.motion.num_frames == 6
    assert player.motion.fps == pytest.approx(60.0, rel=1e-4)


def test_converter_raises_on_bad_input(chain_asf, tmp_path):
    with pytest.raises(MocapError):
        ASFAMCtoBVH().convert(str(chain_asf), str(tmp_path / "missing.amc"), str(tmp_path / "out.bvh"))


def test_command_line(chain_asf, chain_amc, tmp_path):
    out = tmp_path / "cli.bvh"
    amc2bvh_main([str(chain_asf), str(chain_amc), "-o", str(out), "--verify", "-p", "4"])
    assert out.exists()

    with pytest.raises(SystemExit) as info:
        amc2bvh_main([str(chain_asf), str(tmp_path / "nope.amc"), "-o", str(out)])
    assert info.value.code == 1


# =============================================================================
# BATCH
# =============================================================================

@pytest.fixture
def cmu_tree(tmp_path, chain_asf, chain_amc):
    """subjects/01 with two motions and trials.txt; subjects/02 without an ASF"""
    subject = tmp_path / "cmu" / "subjects" / "01"
    subject.mkdir(parents=True)
    shutil.copy(chain_asf, subject / "01.asf")
    shutil.copy(chain_amc, subject / "01_01.amc")
    shutil.copy(chain_amc, subject / "01_02.amc")
    (subject / "trials.txt").write_text("01_01 walk\n01_02 walk\n")

    empty = tmp_path / "cmu" / "subjects" / "02"
    empty.mkdir()
    shutil.copy(chain_amc, empty / "02_01.amc")
    return tmp_path / "cmu"


def test_batch_converts_and_reports(cmu_tree, tmp_path):
    out = tmp_path / "bvh"
    converter = BatchConverter(cmu_tree, out, ConversionConfig(), max_workers=2)
    report = converter.run(progress=False)

    assert report.successful == 2
    assert report.failed == 0
    assert report.total_frames == 12
    assert (out / "01" / "01_01.bvh").exists()
    assert (out / "01" / "trials.txt").exists()
    assert not (out / "02").exists()

    saved = json.loads((out / "conversion_report.json").read_text())
    assert saved["successful"] == 2
    assert saved["failed_tasks"] == []

    again = converter.run(progress=False)
    assert again.skipped == 2
    assert again.total_tasks == 2
    assert again.successful == 0


def test_batch_dry_run_writes_nothing(cmu_tree, tmp_path):
    out = tmp_path / "bvh"
    converter = BatchConverter(cmu_tree, out, ConversionConfig())
    tasks, skipped = converter.discover_tasks({"01"})
    assert [t.motion_name for t in tasks] == ["01_01", "01_02"]
    assert skipped == 0

    report = converter.run(dry_run=True, progress=False)
    assert report.total_tasks == 2
    assert not out.exists()


def test_batch_reports_failures(cmu_tree, tmp_path):
    (cmu_tree / "subjects" / "01" / "01_03.amc").write_text(":DEGREES\n1\nroot 0 0\n")
    out = tmp_path / "bvh"
    report = BatchConverter(cmu_tree, out, ConversionConfig(), max_workers=1).run(progress=False)
    assert report.successful == 2
    assert report.failed == 1
    assert report.failed_tasks[0]["motion"] == "01_03"
    assert "MocapError" in report.failed_tasks[0]["error"]


def test_validate_bvh_file(bvh_file, tmp_path):
    assert validate_bvh_file(bvh_file) == (True, "", 10)
    empty = tmp_path / "empty.bvh"
    empty.write_text("")
    assert validate_bvh_file(empty)[0] is False
    assert validate_bvh_file(tmp_path / "missing.bvh")[1] == "File does not exist"


# =============================================================================
# TRUNCATION
# =============================================================================

def test_truncate_bvh(bvh_file, tmp_path):
    out = tmp_path / "short.bvh"
    assert truncate_bvh(bvh_file, out, 3) == 3
    player = Player()
    assert player.load_bvh(str(out))
    assert player.motion.num_frames == 3

    assert truncate_bvh(bvh_file, tmp_path / "all.bvh", 100) == 10


def test_truncate_amc(chain_asf, chain_amc, tmp_path):
    out = tmp_path / "short.amc"
    assert truncate_amc(chain_asf, chain_amc, out, 2) == 2
    player = Player()
    assert player.load_asf_amc(str(chain_asf), str(out))
    assert player.motion.num_frames == 2


def test_truncate_missing_input_raises(tmp_path):
    with pytest.raises(MocapError):
        truncate_bvh(tmp_path / "missing.bvh", tmp_path / "out.bvh", 3)


def test_find_asf(chain_asf, chain_amc):
    assert find_asf(chain_amc) == chain_asf


# =============================================================================
# DIAGNOSIS
# =============================================================================

def test_compare_conversion_passes(chain_asf, chain_amc):
    diagnosis = compare_conversion(str(chain_asf), str(chain_amc))
    assert diagnosis.num_frames == 6
    assert diagnosis.passed()
    assert set(diagnosis.per_joint_rotation_deg) >= {"root", "lfemur", "lfoot"}


def test_rotation_angle_deg():
    a = QuaternionMath.axis_rotation(1, 0.2)
    b = QuaternionMath.axis_rotation(1, 0.7)
    assert rotation_angle_deg(a, b) == pytest.approx(np.degrees(0.5))
    assert rotation_angle_deg(a, a) == pytest.approx(0.0, abs=1e-9)


# =============================================================================
# VISUALIZER
# =============================================================================

def test_rotation_curves_follow_channels(bvh_file):
    player = viz.load_player(str(bvh_file))
    curves = viz.joint_rotation_curves(player, "Chest")
    assert list(curves) == ["Zrotation", "Xrotation", "Yrotation"]

    rows = np.array(bvh_motion_rows(10))
    np.testing.assert_allclose(curves["Zrotation"], rows[:, 6], atol=1e-4)
    np.testing.assert_allclose(curves["Xrotation"], rows[:, 7], atol=1e-4)

    with pytest.raises(ValueError):
        viz.joint_rotation_curves(player, "Tail")


def test_smoothing_keeps_length():
    data = np.sin(np.linspace(0.0, 3.0, 40))
    for smoother in viz.SMOOTHERS.values():
        assert smoother(data).shape == data.shape
    short = np.array([1.0, 2.0])
    np.testing.assert_array_equal(viz.SmoothingMethods.moving_average(short), short)


def test_velocity_and_statistics():
    data = np.array([0.0, 1.0, 3.0])
    np.testing.assert_allclose(viz.compute_motion_velocity(data, 0.5), [2.0, 2.0, 4.0])
    stats = viz.compute_joint_statistics(data)
    assert stats["range"] == 3.0
    assert stats["max"] == 3.0


def test_plots_and_report(bvh_file, tmp_path):
    player = viz.load_player(str(bvh_file))
    visualizer = viz.MotionVisualizer(player, viz.load_player(str(bvh_file)))

    visualizer.plot_pose(2, save_path=str(tmp_path / "pose.png"))
    visualizer.plot_joint_rotations("Head", smoothing="gaussian")
    visualizer.plot_root_trajectory()
    assert (tmp_path / "pose.png").exists()

    report = viz.generate_analysis_report(player, ["Hips", "Chest"])
    assert "Frames: 10" in report
    assert "Chest" in report


def test_visualizer_command_line(bvh_file, tmp_path):
    out = tmp_path / "viz"
    assert viz.main([str(bvh_file), "-o", str(out), "--joints", "Hips"]) == 0
    assert (out / "pose.png").exists()
    assert (out / "rotations_Hips.png").exists()
    assert "Hips" in (out / "analysis_report.txt").read_text()

    assert viz.main([str(tmp_path / "missing.bvh"), "-o", str(out)]) == 1
