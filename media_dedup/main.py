import argparse
import logging
import sys
from pathlib import Path

from . import config
from .core import DedupApp
from .exceptions import MediaDedupError
from .reporting import ReportGenerator

def setup_logging(output_dir: Path, verbose: bool):
    """Sets up logging to both console and a file in the output directory."""
    log_level = logging.DEBUG if verbose else logging.INFO

    output_dir.mkdir(parents=True, exist_ok=True)
    log_file = output_dir / config.LOG_FILENAME

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ],
        force=True,
    )

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Media File Deduplication Tool: writes a reviewable removal script")

    p.add_argument("-f", "--filepath", type=Path, default=Path.cwd(),
                   help="Root directory to scan (default: current directory)")
    p.add_argument("-o", "--output-dir", type=Path, default=Path.cwd(),
                   help=f"Where {config.SCRIPT_NAME}, the cache and the log go (default: current directory)")
    p.add_argument("--cache", type=Path, default=None,
                   help=f"Custom path for the checksum cache (default: output-dir/{config.CACHE_FILENAME})")
    p.add_argument("--no-cache", action="store_true", help="Hash everything and do not persist checksums")
    p.add_argument("--prune-cache", action="store_true", help="Drop cache entries for files that no longer exist")
    p.add_argument("-w", "--workers", type=int, default=config.DEFAULT_WORKERS,
                   help="Parallel hashing workers (1 = sequential)")
    p.add_argument("--skip-dirs-file", type=Path, default=None, help="File containing paths to ignore")
    p.add_argument("--report-csv", type=Path, default=None, help="Also write a CSV listing every duplicate")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)

def load_skip_dirs(skip_file: Path) -> set[Path]:
    if not skip_file or not skip_file.exists():
        return set()

    skips = set()
    with skip_file.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                skips.add(Path(line))
    return skips

def main(argv=None) -> int:
    args = parse_args(argv)

    output_dir = args.output_dir.resolve()
    try:
        setup_logging(output_dir, args.verbose)
    except OSError as e:
        print(f"Cannot write log file in {output_dir}: {e}", file=sys.stderr)
        return 1

    logging.info("=== Media Dedup Started ===")
    logging.info(f"Working directory: {args.filepath.resolve()}")

    skip_dirs = load_skip_dirs(args.skip_dirs_file) if args.skip_dirs_file else set()
    app = DedupApp(output_dir, cache_path=args.cache, use_cache=not args.no_cache)

    try:
        summary = app.run(
            args.filepath,
            max_workers=args.workers,
            prune_cache=args.prune_cache,
            skip_dirs=skip_dirs,
        )
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 1
    except MediaDedupError as e:
        logging.error(str(e))
        return 1

    reporter = ReportGenerator(summary)
    reporter.log_summary()
    if args.report_csv:
        try:
            reporter.write_csv(app.groups, app.renames, args.report_csv)
        except OSError as e:
            logging.warning(f"Could not write report {args.report_csv}: {e}")

    return 0

if __name__ == "__main__":
    sys.exit(main())
