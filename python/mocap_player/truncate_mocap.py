#!/usr/bin/env python3
"""
Truncate BVH and AMC files to their first frames.

Files are parsed and rewritten, so the output is always well formed
(frame count, frame time, AMC header directives).
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from .errors import MocapError
from .main import setup_logging
from .player import Player

logger = logging.getLogger(__name__)


def truncate_bvh(input_path, output_path, max_frames: int) -> int:
    """
    Keep the first `max_frames` frames of a BVH file.

    Returns:
        Number of frames written

    Raises:
        MocapError: if the input cannot be loaded or the output written
    """
    player = Player()
    if not player.load_bvh(str(input_path)):
        raise MocapError(f"cannot load {input_path}")

    player.motion = player.motion.sub_motion(0, max_frames)
    if not player.save_bvh(str(output_path)):
        raise MocapError(f"cannot write {output_path}")

    logger.info("Truncated BVH: %s -> %s (%d frames)", input_path, output_path, player.motion.num_frames)
    return player.motion.num_frames


def truncate_amc(asf_path, input_path, output_path, max_frames: int) -> int:
    """
    Keep the first `max_frames` frames of an AMC file.

    Args:
        asf_path: Skeleton the motion was recorded for

    Returns:
        Number of frames written

    Raises:
        MocapError: if the inputs cannot be loaded or the output written
    """
    player = Player()
    if not player.load_asf_amc(str(asf_path), str(input_path)):
        raise MocapError(f"cannot load {asf_path} / {input_path}")

    player.motion = player.motion.sub_motion(0, max_frames)
    if not player.save_amc(str(output_path)):
        raise MocapError(f"cannot write {output_path}")

    logger.info("Truncated AMC: %s -> %s (%d frames)", input_path, output_path, player.motion.num_frames)
    return player.motion.num_frames


def find_asf(amc_path: Path) -> Optional[Path]:
    """First ASF file next to an AMC file"""
    candidates = sorted(amc_path.parent.glob('*.asf'))
    return candidates[0] if candidates else None


def main(argv=None):
    parser = argparse.ArgumentParser(description='Truncate BVH and AMC files to a specific number of frames.')
    parser.add_argument('input', help='Input file or directory')
    parser.add_argument('--frames', '-n', type=int, default=100, help='Number of frames to keep')
    parser.add_argument('--output', '-o', help='Output file or directory (optional). If omitted, adds _truncated suffix.')
    parser.add_argument('--asf', help='ASF skeleton for AMC input (default: first ASF file in the same directory)')
    parser.add_argument('--overwrite', action='store_true', help='Overwrite input files')

    args = parser.parse_args(argv)
    setup_logging()

    input_path = Path(args.input)
    if input_path.is_file():
        files = [input_path]
    elif input_path.is_dir():
        files = sorted(input_path.glob('**/*.bvh')) + sorted(input_path.glob('**/*.amc'))
    else:
        logger.error("%s not found", input_path)
        return

    if args.output and Path(args.output).suffix and len(files) > 1:
        logger.error("Output path is a file but multiple input files found")
        return

    for file_path in files:
        if args.overwrite:
            out_path = file_path
        elif args.output and Path(args.output).suffix:
            out_path = Path(args.output)
        elif args.output:
            rel_path = file_path.relative_to(input_path) if input_path.is_dir() else file_path.name
            out_path = Path(args.output) / rel_path
            out_path.parent.mkdir(parents=True, exist_ok=True)
        else:
            out_path = file_path.with_name(f"{file_path.stem}_truncated{file_path.suffix}")

        try:
            if file_path.suffix.lower() == '.bvh':
                truncate_bvh(file_path, out_path, args.frames)
            elif file_path.suffix.lower() == '.amc':
                asf_path = Path(args.asf) if args.asf else find_asf(file_path)
                if asf_path is None:
                    logger.warning("No ASF file for %s, skipping", file_path)
                    continue
                truncate_amc(asf_path, file_path, out_path, args.frames)
        except MocapError as e:
            logger.error("%s", e)


if __name__ == '__main__':
    main()
