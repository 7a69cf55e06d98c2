"""
Main converter module for ASF/AMC to BVH conversion.

Provides the ASFAMCtoBVH converter class and the command-line interface
for converting Acclaim skeleton/motion files to BVH format.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import numpy as np

from .config import ConversionConfig, DEFAULT_FPS
from .errors import MocapError
from .player import Player

logger = logging.getLogger(__name__)


class ASFAMCtoBVH:
    """Main converter class for ASF/AMC to BVH conversion"""

    def __init__(self, config: ConversionConfig = None):
        self.config = config or ConversionConfig()
        self.player = Player()

    def convert(self, asf_path: str, amc_path: str, output_path: str) -> str:
        """
        Convert ASF/AMC files to a BVH file.

        Args:
            asf_path: ASF skeleton file
            amc_path: AMC motion file
            output_path: BVH file to write

        Returns:
            The output path

        Raises:
            MocapError: if a file cannot be loaded or written, or the
                verification finds a pose that moved
        """
        logger.info("Parsing skeleton: %s", asf_path)
        logger.info("Parsing motion: %s", amc_path)
        if not self.player.load_asf_amc(asf_path, amc_path, self.config.fps):
            raise MocapError(f"cannot load {asf_path} / {amc_path}")

        reference = None
        if self.config.verify:
            reference = Player(self.player.skeleton.copy(), self.player.motion.copy())

        self.player.convert_amc_to_bvh()
        if reference is not None:
            error = verify_conversion(reference, self.player)
            if error > self.config.tolerance:
                raise MocapError(f"converted pose deviates by {error:.6g} (tolerance {self.config.tolerance})")
            logger.info("Verified %d frames, max deviation %.3g", self.player.motion.num_frames, error)

        logger.info("Writing BVH: %s", output_path)
        if not self.player.save_bvh(output_path, self.config.precision):
            raise MocapError(f"cannot write {output_path}")

        logger.info("Conversion complete: %d frames, %d joints, %.1f fps",
                    self.player.motion.num_frames, len(self.player.skeleton.joints), self.config.fps)
        return output_path


def verify_conversion(amc: Player, bvh: Player) -> float:
    """
    Compare every frame of an ASF/AMC player with its converted BVH player.

    A converted joint sits where its parent sat before conversion, every
    original joint keeps its global rotation and each added end site sits
    at the former leaf.

    Returns:
        The largest deviation found (position units or matrix entries)
    """
    original = len(amc.skeleton.joints)
    worst = 0.0
    for index in range(amc.motion.num_frames):
        amc.update(index)
        bvh.update(index)
        for joint in bvh.skeleton.joints:
            if joint.id < original:
                source = amc.skeleton.get_joint_by_id(joint.id)
                worst = max(worst, np.abs(joint.global_transform.rotation - source.global_transform.rotation).max())
                if source.parent is None:
                    continue
                expected = source.parent.global_transform.translation
            else:
                expected = amc.skeleton.get_joint_by_id(joint.parent.id).global_transform.translation
            worst = max(worst, np.abs(joint.global_transform.translation - expected).max())
    return worst


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None):
    """Configure logging for the command-line tools."""
    handlers = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def main(argv=None):
    """Command-line interface for ASF/AMC to BVH conversion"""
    parser = argparse.ArgumentParser(
        description='Convert ASF/AMC to BVH',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  %(prog)s skeleton.asf motion.amc -o output.bvh

  # Check that every converted frame renders the same pose
  %(prog)s skeleton.asf motion.amc -o output.bvh --verify

  # AMC files carry no frame rate
  %(prog)s skeleton.asf motion.amc -o output.bvh --fps 60
        """
    )

    parser.add_argument('asf', help='Input ASF skeleton file')
    parser.add_argument('amc', help='Input AMC motion file')
    parser.add_argument('-o', '--output', default='output.bvh', help='Output BVH file (default: output.bvh)')
    parser.add_argument('-f', '--fps', type=float, default=DEFAULT_FPS, help='Frames per second (default: 120)')
    parser.add_argument('-p', '--precision', type=int, default=6, help='Decimal places written (default: 6)')
    parser.add_argument('--verify', action='store_true', help='Compare converted poses against the source')
    parser.add_argument('--tolerance', type=float, default=1e-4, help='Verification tolerance (default: 1e-4)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = ConversionConfig(
        fps=args.fps,
        verify=args.verify,
        tolerance=args.tolerance,
        precision=args.precision,
    )

    try:
        ASFAMCtoBVH(config).convert(args.asf, args.amc, args.output)
    except MocapError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == '__main__':
    main()
