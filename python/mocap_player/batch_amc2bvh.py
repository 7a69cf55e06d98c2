#!/usr/bin/env python3
"""
Batch ASF/AMC to BVH Converter

Walks a CMU-style tree (subjects/<id>/<id>.asf + <id>_<nn>.amc), converts
every motion on a thread pool and writes a JSON report next to the output.

Usage:
    python -m mocap_player.batch_amc2bvh /data/cmu -o data/cmu_bvh
    python -m mocap_player.batch_amc2bvh /data/cmu -o out --subjects 01,86 --workers 8
"""

import argparse
import json
import logging
import shutil
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from tqdm import tqdm

from .config import ConversionConfig, DEFAULT_FPS
from .errors import MocapError
from .main import ASFAMCtoBVH, setup_logging
from .player import Player

logger = logging.getLogger(__name__)

REPORT_NAME = "conversion_report.json"
METADATA_FILES = ("trials.txt", "trials.json")


@dataclass(frozen=True)
class ConversionTask:
    """One AMC motion of a subject and where its BVH goes"""
    subject_id: str
    asf_path: Path
    amc_path: Path
    output_path: Path

    @property
    def motion_name(self) -> str:
        return self.amc_path.stem

    @property
    def label(self) -> str:
        return f"{self.subject_id}/{self.motion_name}"


@dataclass
class ConversionResult:
    task: ConversionTask
    success: bool
    error: Optional[str] = None
    duration_seconds: float = 0.0
    output_size_bytes: int = 0
    frame_count: int = 0

    @classmethod
    def failure(cls, task: ConversionTask, error: str, started: float) -> "ConversionResult":
        return cls(task=task, success=False, error=error, duration_seconds=time.time() - started)


@dataclass
class BatchConversionReport:
    """Totals of one batch run, saved as JSON"""
    start_time: str
    end_time: str
    duration_seconds: float
    total_tasks: int
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    total_frames: int = 0
    total_output_bytes: int = 0
    failed_tasks: List[Dict] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: List[ConversionResult], started: datetime, finished: datetime,
                     skipped: int = 0) -> "BatchConversionReport":
        done = [r for r in results if r.success]
        return cls(
            start_time=started.isoformat(),
            end_time=finished.isoformat(),
            duration_seconds=(finished - started).total_seconds(),
            total_tasks=len(results) + skipped,
            successful=len(done),
            failed=len(results) - len(done),
            skipped=skipped,
            total_frames=sum(r.frame_count for r in done),
            total_output_bytes=sum(r.output_size_bytes for r in done),
            failed_tasks=[{'subject': r.task.subject_id, 'motion': r.task.motion_name, 'error': r.error}
                          for r in results if not r.success],
        )

    def to_dict(self) -> Dict:
        return asdict(self)

    def save(self, filepath: Path):
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info("Report saved to %s", filepath)

    def log_summary(self):
        logger.info("Conversion summary: %d successful, %d failed, %d skipped, %d frames, %.1f MB in %.1fs",
                    self.successful, self.failed, self.skipped, self.total_frames,
                    self.total_output_bytes / (1024 * 1024), self.duration_seconds)
        for failure in self.failed_tasks:
            logger.warning("Failed: %s/%s: %s", failure['subject'], failure['motion'], failure['error'])


def validate_bvh_file(filepath: Path) -> Tuple[bool, str, int]:
    """
    Check a written BVH file by loading it again.

    Returns:
        (is_valid, error_message, frame_count)
    """
    if not filepath.exists():
        return False, "File does not exist", 0
    if filepath.stat().st_size == 0:
        return False, "File is empty", 0

    player = Player()
    if not player.load_bvh(str(filepath)):
        return False, "Cannot parse BVH file", 0
    return True, "", player.motion.num_frames


class BatchConverter:
    """
    Converts every ASF/AMC pair below an input directory.

    Outputs that already exist are skipped unless `force` is set, so an
    interrupted run can simply be started again.
    """

    def __init__(self, input_dir: Path, output_dir: Path, config: ConversionConfig,
                 max_workers: int = 4, force: bool = False, validate: bool = True):
        """
        Args:
            input_dir: CMU root (with a subjects/ folder) or the subjects folder itself
            output_dir: Root of the <subject>/<motion>.bvh output tree
            config: Settings passed to every ASFAMCtoBVH conversion
            max_workers: Size of the conversion thread pool
            force: Convert even when the output file exists
            validate: Re-load each written BVH file
        """
        self.input_dir = Path(input_dir)
        self.output_dir = Path(output_dir)
        self.config = config
        self.max_workers = max_workers
        self.force = force
        self.validate = validate

    @property
    def subjects_dir(self) -> Path:
        nested = self.input_dir / 'subjects'
        return nested if nested.exists() else self.input_dir

    def _subjects(self, wanted: Optional[Set[str]]) -> Iterator[Tuple[str, Path, List[Path]]]:
        """(subject id, ASF file, AMC files) for every usable subject folder"""
        for folder in sorted(p for p in self.subjects_dir.iterdir() if p.is_dir()):
            if wanted and folder.name not in wanted:
                continue
            skeletons = sorted(folder.glob("*.asf"))
            motions = sorted(folder.glob("*.amc"))
            if not skeletons:
                logger.warning("Subject %s: no ASF file, skipping", folder.name)
            elif not motions:
                logger.warning("Subject %s: no AMC files, skipping", folder.name)
            else:
                yield folder.name, skeletons[0], motions

    def discover_tasks(self, subjects: Optional[Set[str]] = None) -> Tuple[List[ConversionTask], int]:
        """
        Find the motions to convert.

        Args:
            subjects: Subject ids to restrict to, e.g. {'01', '86'}

        Returns:
            (tasks, number of motions whose output already exists)
        """
        if not self.subjects_dir.exists():
            logger.error("Input directory does not exist: %s", self.subjects_dir)
            return [], 0

        tasks = []
        skipped = 0
        for subject_id, asf_path, amc_paths in self._subjects(subjects):
            for amc_path in amc_paths:
                target = self.output_dir / subject_id / f"{amc_path.stem}.bvh"
                if target.exists() and not self.force:
                    logger.debug("Skipping %s: output exists", amc_path.name)
                    skipped += 1
                else:
                    tasks.append(ConversionTask(subject_id, asf_path, amc_path, target))

        logger.info("Found %d motions to convert, %d already converted", len(tasks), skipped)
        return tasks, skipped

    def convert_single(self, task: ConversionTask) -> ConversionResult:
        """Convert one motion; failures end up in the result"""
        started = time.time()
        try:
            task.output_path.parent.mkdir(parents=True, exist_ok=True)
            ASFAMCtoBVH(self.config).convert(str(task.asf_path), str(task.amc_path), str(task.output_path))
        except (MocapError, OSError) as e:
            logger.error("Failed to convert %s: %s", task.label, e)
            return ConversionResult.failure(task, f"{type(e).__name__}: {e}", started)

        frames = 0
        if self.validate:
            valid, reason, frames = validate_bvh_file(task.output_path)
            if not valid:
                return ConversionResult.failure(task, f"Verification failed: {reason}", started)

        return ConversionResult(task=task, success=True, duration_seconds=time.time() - started,
                                output_size_bytes=task.output_path.stat().st_size, frame_count=frames)

    def convert_all(self, tasks: List[ConversionTask], progress: bool = True) -> List[ConversionResult]:
        if not tasks:
            return []

        logger.info("Converting %d motions with %d workers", len(tasks), self.max_workers)
        results = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self.convert_single, task) for task in tasks]
            with tqdm(total=len(tasks), desc="Converting", unit="file", ncols=80, disable=not progress) as bar:
                for future in as_completed(futures):
                    results.append(future.result())
                    bar.update(1)
        return results

    def copy_metadata_files(self, subject_ids: Set[str]) -> int:
        """Copy each subject's trials.txt/trials.json into its output folder"""
        copied = 0
        for subject_id in sorted(subject_ids):
            target = self.output_dir / subject_id
            if not target.exists():
                continue
            for name in METADATA_FILES:
                source = self.subjects_dir / subject_id / name
                if source.exists():
                    shutil.copy2(source, target / name)
                    copied += 1
        if copied:
            logger.info("Copied %d metadata files", copied)
        return copied

    def run(self, subjects: Optional[Set[str]] = None, dry_run: bool = False,
            progress: bool = True) -> BatchConversionReport:
        """
        Discover, convert, copy metadata and save the report.

        A dry run only lists the motions it would convert and writes nothing.
        """
        started = datetime.now()
        tasks, skipped = self.discover_tasks(subjects)

        if dry_run:
            for task in tasks:
                logger.info("[DRY RUN] %s", task.label)
        if dry_run or not tasks:
            report = BatchConversionReport.from_results([], started, datetime.now(), skipped)
            report.total_tasks += len(tasks)
            return report

        self.output_dir.mkdir(parents=True, exist_ok=True)
        results = self.convert_all(tasks, progress)
        report = BatchConversionReport.from_results(results, started, datetime.now(), skipped)
        report.log_summary()

        self.copy_metadata_files({r.task.subject_id for r in results if r.success})
        report.save(self.output_dir / REPORT_NAME)
        return report


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Convert a CMU-style tree of ASF/AMC motions to BVH',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  %(prog)s /data/cmu -o data/cmu_bvh
  %(prog)s /data/cmu -o out --subjects 1,2,86 --verify
  %(prog)s /data/cmu -o out --dry-run
        """
    )
    parser.add_argument('input_dir', help='CMU root or its subjects/ folder')
    parser.add_argument('-o', '--output', required=True, help='Root of the BVH output tree')
    parser.add_argument('-w', '--workers', type=int, default=4, help='Conversion threads (default: 4)')
    parser.add_argument('-f', '--fps', type=float, default=DEFAULT_FPS, help='Frame rate of the AMC data (default: 120)')
    parser.add_argument('--subjects', default=None, help='Comma-separated subject ids; padded to two digits')
    parser.add_argument('--force', action='store_true', help='Reconvert motions whose output exists')
    parser.add_argument('--dry-run', action='store_true', help='List the motions to convert and stop')
    parser.add_argument('--verify', action='store_true', help='Check every converted pose against the AMC source')
    parser.add_argument('--no-validate', action='store_true', help='Do not re-load written BVH files')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    args = parser.parse_args(argv)

    log_file = None if args.dry_run else Path(args.output) / "batch_conversion.log"
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, log_file)

    subjects = None
    if args.subjects:
        subjects = {s.strip().zfill(2) for s in args.subjects.split(',')}

    converter = BatchConverter(
        input_dir=Path(args.input_dir),
        output_dir=Path(args.output),
        config=ConversionConfig(fps=args.fps, verify=args.verify),
        max_workers=args.workers,
        force=args.force,
        validate=not args.no_validate,
    )
    report = converter.run(subjects=subjects, dry_run=args.dry_run)
    if report.failed:
        sys.exit(1)


if __name__ == '__main__':
    main()
