"""
TrueAudio - spectral quality analysis CLI

Example usage:
    trueaudio track.flac
    trueaudio --recursive --concurrency 4 library/
    trueaudio --output results.json a.flac b.wav c.flac
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from trueaudio import __version__
from trueaudio.core.batch_processor import BatchScheduler, BatchStats, create_batch_scheduler
from trueaudio.core.engine import create_analysis_engine
from trueaudio.core.loader import SUPPORTED_FORMATS, AsyncAudioLoader, create_audio_loader
from trueaudio.core.models import BatchOutcome, FileMetadata, Verdict
from trueaudio.utils.config import load_config
from trueaudio.utils.errors import AnalysisError, ConfigurationError
from trueaudio.utils.logging import setup_logging


def collect_files(inputs: List[Path], recursive: bool = False) -> List[Path]:
    """Expand files and directories into a sorted list of audio files."""
    files = []
    for path in inputs:
        path = Path(path)
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            files.extend(
                p for p in path.glob(pattern)
                if p.is_file() and p.suffix.lower() in SUPPORTED_FORMATS
            )
        else:
            # Missing or unsupported files surface as decode failures
            files.append(path)
    return sorted(set(files))


def print_verdict(file_path: Path, verdict: Verdict, metadata: Optional[FileMetadata] = None) -> None:
    """Print one verdict line to the console."""
    flag = "  [UPSCALED]" if verdict.is_upscaled else ""
    details = f"  [{metadata.get_summary()}]" if metadata else ""
    print(
        f"{file_path.name:<40} {verdict.quality_label:<14} "
        f"{verdict.quality_score:>3}/100  cutoff {verdict.cutoff_hz:>7.0f} Hz "
        f"({verdict.normalized_frequency_pct:>5.1f}%)  "
        f"confidence {verdict.confidence:>3}%{flag}{details}"
    )


def print_failure(file_path: Path, error: Exception) -> None:
    print(f"{file_path.name:<40} FAILED: {error}")


def print_summary(stats: BatchStats, load_failures: int) -> None:
    """Print batch statistics."""
    print("\n" + "=" * 60)
    print("TRUEAUDIO BATCH SUMMARY")
    print("=" * 60)
    print(f"Total Files: {stats.total_submitted + load_failures}")
    print(f"Analyzed: {stats.completed}")
    print(f"Failed: {stats.failed + load_failures}")
    if stats.average_score is not None:
        print(f"Best Score: {stats.best_score}")
        print(f"Worst Score: {stats.worst_score}")
        print(f"Average Score: {stats.average_score:.1f}")
    print(f"Total Time: {stats.total_time:.2f}s")


async def analyze_files(
    files: List[Path],
    scheduler: BatchScheduler,
    loader: AsyncAudioLoader,
) -> Tuple[Dict[Path, Union[Verdict, Exception]], Dict[Path, FileMetadata]]:
    """
    Decode files and stream them through the scheduler.

    Returns:
        Mapping of file to its verdict or the error that stopped it, and
        the metadata of every file that decoded
    """
    results: Dict[Path, Union[Verdict, Exception]] = {}
    metadata: Dict[Path, FileMetadata] = {}

    loaded = await asyncio.gather(
        *(loader.load_with_metadata(path) for path in files), return_exceptions=True
    )
    submissions = []
    for path, entry in zip(files, loaded):
        if isinstance(entry, AnalysisError):
            results[path] = entry
            print_failure(path, entry)
        elif isinstance(entry, BaseException):
            raise entry
        else:
            buffer, metadata[path] = entry
            submissions.append((path, buffer))

    outcome: BatchOutcome
    async for outcome in scheduler.submit_batch(submissions):
        if outcome.succeeded:
            results[outcome.id] = outcome.verdict
            print_verdict(outcome.id, outcome.verdict, metadata.get(outcome.id))
        else:
            results[outcome.id] = outcome.error
            print_failure(outcome.id, outcome.error)

    return results, metadata


def write_json(
    results: Dict[Path, Union[Verdict, Exception]],
    metadata: Dict[Path, FileMetadata],
    output_path: Path,
) -> None:
    """Write one record per file as a JSON array."""
    records = []
    for path, result in sorted(results.items()):
        record = {
            "file": str(path),
            "metadata": metadata[path].to_dict() if path in metadata else None,
            "verdict": None,
            "error": None,
        }
        if isinstance(result, Verdict):
            record["verdict"] = result.to_dict()
        else:
            record["error"] = str(result)
        records.append(record)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(records, f, indent=2, default=str)


def run(
    inputs: List[Path],
    config: dict,
    recursive: bool = False,
    output_json: Optional[Path] = None,
    verbose: bool = False,
) -> int:
    """
    Analyze files and print verdicts.

    Returns:
        Exit code (0 for success, 1 if any file failed)
    """
    files = collect_files(inputs, recursive)
    if not files:
        print("Error: No audio files found")
        return 1

    try:
        engine = create_analysis_engine(config)
        scheduler = create_batch_scheduler(engine, config)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1
    loader = AsyncAudioLoader(create_audio_loader(config.get('audio', {})))

    try:
        results, metadata = asyncio.run(analyze_files(files, scheduler, loader))
        stats = scheduler.stats()
        load_failures = len(results) - stats.completed - stats.failed
        print_summary(stats, load_failures)

        if output_json:
            write_json(results, metadata, output_json)
            print(f"\nJSON results saved to: {output_json}")

        failed = sum(1 for r in results.values() if not isinstance(r, Verdict))
        return 0 if failed == 0 else 1

    except Exception as e:
        print(f"Error during analysis: {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        return 1

    finally:
        scheduler.shutdown()
        loader.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the trueaudio command."""
    parser = argparse.ArgumentParser(
        prog="trueaudio",
        description="Estimate true audio bandwidth and detect upscaled files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  trueaudio track.flac
  trueaudio --recursive library/
  trueaudio --concurrency 4 --output results.json *.flac
        """
    )
    parser.add_argument(
        "inputs",
        type=Path,
        nargs="+",
        help="Audio file(s) or directory to analyze"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--recursive",
        "-r",
        action="store_true",
        help="Search directories recursively"
    )
    parser.add_argument(
        "--concurrency",
        "-j",
        type=int,
        default=None,
        help="Maximum files analysed at once (overrides batch.concurrency_limit)"
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Path to save JSON results"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"trueaudio {__version__}"
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(str(args.config) if args.config else None)
    except AnalysisError as e:
        print(f"Error: {e}")
        return 1

    if args.concurrency is not None:
        config["batch"]["concurrency_limit"] = args.concurrency

    logging_config = config.get("logging", {})
    setup_logging(
        level="DEBUG" if args.verbose else logging_config.get("level", "INFO"),
        log_format=logging_config.get("format", "text"),
        log_file=logging_config.get("file"),
        colored=True,
        console_enabled=True
    )

    return run(
        inputs=args.inputs,
        config=config,
        recursive=args.recursive,
        output_json=args.output,
        verbose=args.verbose,
    )


if __name__ == "__main__":
    sys.exit(main())
