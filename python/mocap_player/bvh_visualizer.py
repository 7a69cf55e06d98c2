#!/usr/bin/env python3
"""
Motion Capture Visualization Tool
=================================
Plots and analysis for BVH files and ASF/AMC pairs loaded through the Player.
Features:
- Stick-figure pose plot of any frame
- Joint rotation curves (channel order of the joint) with optional smoothing
- Side-by-side comparison between two motions
- Root trajectory and per-joint statistics
- Animation export
"""

import argparse
import logging
import os
from typing import Dict, List, Optional

import numpy as np
import matplotlib
import matplotlib.pyplot as plt
from matplotlib import animation
from scipy import signal
from scipy.ndimage import gaussian_filter1d

from .config import DEFAULT_FPS, RotationOrder
from .main import setup_logging
from .player import Player
from .rot_converter import RotationConverter

logger = logging.getLogger(__name__)


# =============================================================================
# SMOOTHING
# =============================================================================

class SmoothingMethods:
    """Collection of smoothing algorithms for motion curves."""

    @staticmethod
    def moving_average(data: np.ndarray, window_size: int = 5) -> np.ndarray:
        if len(data) < window_size:
            return data.copy()
        kernel = np.ones(window_size) / window_size
        return np.convolve(data, kernel, mode='same')

    @staticmethod
    def gaussian(data: np.ndarray, sigma: float = 2.0) -> np.ndarray:
        return gaussian_filter1d(data, sigma=sigma)

    @staticmethod
    def savitzky_golay(data: np.ndarray, window_size: int = 7, poly_order: int = 3) -> np.ndarray:
        """Savitzky-Golay filter, preserves peaks better than a moving average."""
        if window_size % 2 == 0:
            window_size += 1
        if len(data) < window_size:
            return data.copy()
        return signal.savgol_filter(data, window_size, poly_order)


SMOOTHERS = {
    'moving_average': SmoothingMethods.moving_average,
    'gaussian': SmoothingMethods.gaussian,
    'savgol': SmoothingMethods.savitzky_golay,
}


# =============================================================================
# DATA EXTRACTION
# =============================================================================

def joint_rotation_curves(player: Player, joint_name: str,
                          order: Optional[RotationOrder] = None) -> Dict[str, np.ndarray]:
    """
    Euler curves (degrees) of one joint over the whole motion.

    Args:
        player: Loaded player
        joint_name: Joint to extract
        order: Decomposition order (default: ZXY, the BVH channel layout)

    Returns:
        Channel name ('Zrotation', ...) -> (frames,) array

    Raises:
        ValueError: if the joint does not exist
    """
    joint = player.skeleton.get_joint_by_name(joint_name)
    if joint is None:
        raise ValueError(f"Joint '{joint_name}' not found")

    order = order or RotationOrder.ZXY
    values = np.array([RotationConverter.matrix_to_channels(frame.rotations[joint.id], order)
                       for frame in player.motion.frames]).reshape(-1, 3)
    return {name: values[:, i] for i, name in enumerate(order.channels.split())}


def joint_positions(player: Player, frame_index: int) -> np.ndarray:
    """(joints, 3) global positions of a frame, indexed by joint id"""
    player.update(frame_index)
    return np.array([joint.global_transform.translation for joint in player.skeleton.joints])


def compute_joint_statistics(data: np.ndarray) -> Dict[str, float]:
    return {
        'mean': float(np.mean(data)),
        'std': float(np.std(data)),
        'min': float(np.min(data)),
        'max': float(np.max(data)),
        'range': float(np.ptp(data)),
        'rms': float(np.sqrt(np.mean(data ** 2))),
    }


def compute_motion_velocity(data: np.ndarray, frame_time: float) -> np.ndarray:
    """Per-frame derivative, the first value repeated to keep the length."""
    if len(data) < 2:
        return np.zeros_like(data)
    velocity = np.diff(data) / frame_time
    return np.concatenate([[velocity[0]], velocity])


# =============================================================================
# VISUALIZATION
# =============================================================================

class MotionVisualizer:
    """Visualization toolkit for one motion, optionally compared to a second."""

    def __init__(self, player: Player, other: Optional[Player] = None):
        self.player = player
        self.other = other
        self.colors = plt.cm.tab10.colors

    @staticmethod
    def _frame_time(player: Player) -> float:
        return 1.0 / (player.motion.fps or DEFAULT_FPS)

    def _times(self, player: Player) -> np.ndarray:
        return np.arange(player.motion.num_frames) * self._frame_time(player)

    @staticmethod
    def _label(player: Player) -> str:
        return os.path.basename(player.motion.name)

    def plot_pose(self, frame_index: int = 0, ax=None, save_path: str = None):
        """Stick figure of one frame (Y up)."""
        if ax is None:
            fig = plt.figure(figsize=(8, 8))
            ax = fig.add_subplot(projection='3d')
        else:
            fig = ax.figure

        self._draw_skeleton(ax, self.player, frame_index, self.colors[0])
        if self.other is not None:
            self._draw_skeleton(ax, self.other, frame_index, self.colors[1])

        ax.set_xlabel('X')
        ax.set_ylabel('Z')
        ax.set_zlabel('Y')
        ax.set_title(f'Frame {frame_index}')
        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')
        return fig

    @staticmethod
    def _draw_skeleton(ax, player: Player, frame_index: int, color):
        positions = joint_positions(player, frame_index)
        lines = []
        for joint in player.skeleton.joints:
            if joint.parent is None:
                continue
            a, b = positions[joint.parent.id], positions[joint.id]
            lines.extend(ax.plot([a[0], b[0]], [a[2], b[2]], [a[1], b[1]], '-', color=color, linewidth=2))
        ax.scatter(positions[:, 0], positions[:, 2], positions[:, 1], color=color, s=8)
        return lines

    def plot_joint_rotations(self, joint_name: str, smoothing: Optional[str] = None,
                             smoothing_params: dict = None, save_path: str = None):
        """Rotation curves of a joint, with the comparison motion overlaid."""
        fig, axes = plt.subplots(3, 1, figsize=(14, 10), sharex=True)
        fig.suptitle(f'Joint Rotations: {joint_name}', fontsize=14, fontweight='bold')

        sources = [(self.player, 'b')]
        if self.other is not None and self.other.skeleton.get_joint_by_name(joint_name) is not None:
            sources.append((self.other, 'r'))

        for player, style in sources:
            curves = joint_rotation_curves(player, joint_name)
            times = self._times(player)
            for ax, (channel, values) in zip(axes, curves.items()):
                ax.plot(times, values, style + '-', alpha=0.5, linewidth=1,
                        label=f'{self._label(player)} (raw)')
                if smoothing:
                    smoothed = SMOOTHERS[smoothing](values, **(smoothing_params or {}))
                    ax.plot(times, smoothed, style + '-', linewidth=2,
                            label=f'{self._label(player)} (smoothed)')
                ax.set_ylabel(f'{channel} (°)')

        for ax in axes:
            ax.legend(loc='upper right', fontsize=8)
            ax.grid(True, alpha=0.3)
        axes[-1].set_xlabel('Time (s)')
        fig.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')
        return fig

    def plot_root_trajectory(self, save_path: str = None):
        """Top view (X/Z) of the root path."""
        fig, ax = plt.subplots(figsize=(8, 8))
        for player, color in ((self.player, self.colors[0]), (self.other, self.colors[1])):
            if player is None:
                continue
            path = player.motion.root_trajectory()
            if len(path):
                ax.plot(path[:, 0], path[:, 2], color=color, label=self._label(player))
                ax.plot(path[0, 0], path[0, 2], 'o', color=color)
        ax.set_xlabel('X')
        ax.set_ylabel('Z')
        ax.set_aspect('equal', adjustable='datalim')
        ax.legend()
        ax.grid(True, alpha=0.3)
        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')
        return fig

    def animate(self, start: int = 0, end: Optional[int] = None, step: int = 1, save_path: str = None):
        """Animate frames [start, end); saved with the pillow writer when a path is given."""
        end = self.player.motion.num_frames if end is None else min(end, self.player.motion.num_frames)
        frames = list(range(start, end, step))

        fig = plt.figure(figsize=(8, 8))
        ax = fig.add_subplot(projection='3d')
        lower, upper = self._limits()

        def draw(index):
            ax.cla()
            ax.set_xlim(lower[0], upper[0])
            ax.set_ylim(lower[2], upper[2])
            ax.set_zlim(lower[1], upper[1])
            ax.set_title(f'Frame {index}')
            return self._draw_skeleton(ax, self.player, index, self.colors[0])

        interval = 1000.0 * self._frame_time(self.player) * step
        anim = animation.FuncAnimation(fig, draw, frames=frames, interval=interval, blit=False)
        if save_path:
            anim.save(save_path, writer=animation.PillowWriter(fps=max(1, int(round(1000.0 / interval)))))
        return anim

    def _limits(self):
        path = self.player.motion.root_trajectory()
        extent = self.player.skeleton.get_dimensions().max() or 1.0
        if not len(path):
            return -extent * np.ones(3), extent * np.ones(3)
        return path.min(axis=0) - extent, path.max(axis=0) + extent


def generate_analysis_report(player: Player, joint_names: List[str]) -> str:
    """Plain-text statistics of the rotation curves of some joints."""
    lines = [
        f"Motion: {player.motion.name}",
        f"Frames: {player.motion.num_frames}  FPS: {player.motion.fps:.2f}  "
        f"Duration: {player.motion.duration:.2f}s",
        f"Joints: {len(player.skeleton.joints)}",
        "",
    ]
    for name in joint_names:
        lines.append(name)
        for channel, values in joint_rotation_curves(player, name).items():
            if not len(values):
                continue
            stats = compute_joint_statistics(values)
            lines.append(f"  {channel:<10} mean {stats['mean']:8.2f}  std {stats['std']:7.2f}  "
                         f"range {stats['range']:8.2f}")
    return "\n".join(lines)


def load_player(path: str, asf: Optional[str] = None, fps: float = DEFAULT_FPS) -> Optional[Player]:
    """Load a BVH file, or an AMC file with its ASF skeleton."""
    player = Player()
    if asf:
        ok = player.load_asf_amc(asf, path, fps)
    else:
        ok = player.load_bvh(path)
    return player if ok else None


def main(argv=None):
    parser = argparse.ArgumentParser(description='Visualize and compare motion capture files')
    parser.add_argument('motion_file', help='BVH file, or AMC file together with --asf')
    parser.add_argument('--asf', help='ASF skeleton for an AMC motion file')
    parser.add_argument('--compare', help='Second BVH file to overlay')
    parser.add_argument('--joints', nargs='+', default=None, help='Joints to plot (default: first three)')
    parser.add_argument('--frame', type=int, default=0, help='Frame for the pose plot')
    parser.add_argument('--smoothing', choices=sorted(SMOOTHERS), default=None,
                        help='Smoothing applied to rotation curves')
    parser.add_argument('--animate', action='store_true', help='Export an animated GIF')
    parser.add_argument('-o', '--output-dir', default='viz_output', help='Output directory')
    parser.add_argument('--show', action='store_true', help='Open interactive windows')
    args = parser.parse_args(argv)
    setup_logging()

    if not args.show:
        matplotlib.use('Agg')

    player = load_player(args.motion_file, args.asf)
    if player is None:
        logger.error("Cannot load %s", args.motion_file)
        return 1
    other = None
    if args.compare:
        other = load_player(args.compare)
        if other is None:
            logger.error("Cannot load %s", args.compare)
            return 1

    joints = args.joints or [j.name for j in player.skeleton.joints if not j.is_site][:3]
    os.makedirs(args.output_dir, exist_ok=True)
    viz = MotionVisualizer(player, other)

    viz.plot_pose(args.frame, save_path=os.path.join(args.output_dir, 'pose.png'))
    viz.plot_root_trajectory(save_path=os.path.join(args.output_dir, 'trajectory.png'))
    for name in joints:
        viz.plot_joint_rotations(name, smoothing=args.smoothing,
                                 save_path=os.path.join(args.output_dir, f'rotations_{name}.png'))
    if args.animate:
        viz.animate(save_path=os.path.join(args.output_dir, 'motion.gif'))

    report = generate_analysis_report(player, joints)
    with open(os.path.join(args.output_dir, 'analysis_report.txt'), 'w') as f:
        f.write(report)
    logger.info("Saved visualizations to %s", args.output_dir)

    if args.show:
        plt.show()
    return 0


if __name__ == '__main__':
    main()
