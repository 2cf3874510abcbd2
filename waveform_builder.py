"""Batch waveform builder for WAV recordings.

This module scans an input directory for ``.wav`` files, decodes each one and
writes a PNG of its waveform into the output directory. Files are processed
concurrently and independently: a broken recording is logged and skipped
without affecting the rest of the batch.
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd
from joblib import Parallel, delayed

from wav_reader import read_wav
from waveform_render import render_channel, save_waveform

DEFAULT_INPUT_DIR = Path("audios")
DEFAULT_OUTPUT_DIR = Path("waveforms")
DEFAULT_LOG_DIR = Path("logs")
DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 640
ERROR_LOG_NAME = "waveform_errors.log"
REPORT_NAME = "waveform_report.csv"

CHANNEL_CHOICES = {
    "left": ("left",),
    "right": ("right",),
    "both": ("left", "right"),
}

REPORT_COLUMNS = [
    "file",
    "status",
    "outputs",
    "sample_rate",
    "frame_count",
    "duration",
    "error",
]

logger = logging.getLogger("waveform_builder")
error_logger = logging.getLogger("waveform_builder.errors")


def setup_logging(log_dir: Path = DEFAULT_LOG_DIR, verbose: bool = False) -> None:
    """Configure console and error loggers."""

    log_dir.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(console_handler)

    for name in ("wav_reader", "waveform_render"):
        library_logger = logging.getLogger(name)
        library_logger.setLevel(level)
        if not library_logger.handlers:
            library_logger.handlers = list(logger.handlers)
        library_logger.propagate = False

    if not error_logger.handlers:
        error_logger.setLevel(logging.ERROR)
        file_handler = logging.FileHandler(log_dir / ERROR_LOG_NAME, mode="w", encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        )
        error_logger.addHandler(file_handler)
        error_logger.propagate = False


def find_wav_files(input_dir: Path) -> List[Path]:
    """Return the ``.wav`` files directly inside ``input_dir``, sorted by name."""

    if not input_dir.is_dir():
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    return sorted(
        entry
        for entry in input_dir.iterdir()
        if entry.is_file() and entry.name.lower().endswith(".wav")
    )


def output_name(wav_path: Path, channel: Optional[str] = None) -> str:
    if channel is None:
        return f"{wav_path.stem}.png"
    return f"{wav_path.stem}_{channel}.png"


def process_wav_file(
    wav_path: Path,
    output_dir: Path,
    width: int,
    height: int,
    channels: Sequence[str] = ("left",),
) -> Dict[str, object]:
    """Decode one file and write its waveform image(s).

    Never raises for a bad recording; the returned record carries the status
    and, on failure, the error message.
    """

    record: Dict[str, object] = {
        "file": str(wav_path),
        "status": "failed",
        "outputs": [],
        "sample_rate": None,
        "frame_count": None,
        "duration": None,
        "error": None,
    }

    try:
        audio = read_wav(wav_path)
    except (ValueError, OSError) as exc:
        error_logger.exception("failed to parse WAV file %s: %s", wav_path, exc)
        logger.warning("Skipped %s: %s", wav_path, exc)
        record["error"] = f"decode: {exc}"
        return record

    record["sample_rate"] = audio.sample_rate
    record["frame_count"] = audio.frame_count
    record["duration"] = audio.duration

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        error_logger.exception("failed to create output directory for %s: %s", wav_path, exc)
        logger.warning("Skipped %s: %s", wav_path, exc)
        record["error"] = f"output directory: {exc}"
        return record

    outputs: List[str] = []
    for channel in channels:
        name = output_name(wav_path, channel if len(channels) > 1 else None)
        png_path = output_dir / name
        try:
            pixels = render_channel(audio, channel, width, height)
            save_waveform(pixels, png_path)
        except (ValueError, OSError) as exc:
            error_logger.exception(
                "failed to generate %s channel waveform for %s: %s", channel, wav_path, exc
            )
            logger.warning("Skipped %s channel of %s: %s", channel, wav_path, exc)
            record["outputs"] = outputs
            record["error"] = f"{channel} channel: {exc}"
            return record
        outputs.append(str(png_path))

    record["outputs"] = outputs
    record["status"] = "ok"
    logger.info(
        "Generated %s | sample rate: %d Hz | duration: %.2f s | samples: %d",
        ", ".join(outputs),
        audio.sample_rate,
        audio.duration,
        audio.frame_count,
    )
    return record


def build_waveforms(
    input_dir: Path,
    output_dir: Path,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    channels: Sequence[str] = ("left",),
    jobs: int = -1,
    limit: Optional[int] = None,
) -> tuple[List[Dict[str, object]], Dict[str, object]]:
    """Render every WAV file in ``input_dir`` and wait for all of them."""

    wav_files = find_wav_files(input_dir)
    if limit is not None:
        wav_files = wav_files[:limit]
    if not wav_files:
        logger.warning("No .wav files were found in %s", input_dir)

    start_time = datetime.now()
    started = time.perf_counter()

    results: List[Dict[str, object]] = []
    if wav_files:
        results = Parallel(n_jobs=jobs, prefer="threads")(
            delayed(process_wav_file)(wav_path, output_dir, width, height, channels)
            for wav_path in wav_files
        )

    elapsed = time.perf_counter() - started
    logger.info("Time start: %s", start_time.isoformat(sep=" "))
    logger.info("Time end: %s", datetime.now().isoformat(sep=" "))
    logger.info("Time taken: %.3f s", elapsed)

    valid = sum(1 for record in results if record["status"] == "ok")
    summary: Dict[str, object] = {
        "processed": len(results),
        "valid": valid,
        "failed": len(results) - valid,
        "elapsed": elapsed,
    }
    return results, summary


def safe_write(path: Path, writer) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    writer(tmp_path)
    tmp_path.replace(path)


def results_dataframe(results: Sequence[Dict[str, object]]) -> pd.DataFrame:
    """Tabulate task results, one row per input file."""

    dataframe = pd.DataFrame(list(results), columns=REPORT_COLUMNS)
    dataframe["outputs"] = dataframe["outputs"].apply(
        lambda value: ";".join(value) if isinstance(value, list) else ""
    )
    return dataframe


def export_report(results: Sequence[Dict[str, object]], output_dir: Path) -> Path:
    report_path = output_dir / REPORT_NAME
    dataframe = results_dataframe(results)
    safe_write(report_path, lambda tmp: dataframe.to_csv(tmp, index=False))
    logger.info("Report written to %s", report_path)
    return report_path


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render waveform images for a folder of WAV files")
    parser.add_argument(
        "--input-dir",
        type=Path,
        default=DEFAULT_INPUT_DIR,
        help="Directory scanned for .wav files",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help="Directory receiving the PNG images",
    )
    parser.add_argument("--width", type=int, default=DEFAULT_WIDTH, help="Image width in pixels")
    parser.add_argument("--height", type=int, default=DEFAULT_HEIGHT, help="Image height in pixels")
    parser.add_argument(
        "--channel",
        choices=sorted(CHANNEL_CHOICES),
        default="left",
        help="Channel(s) to draw; 'both' writes <name>_left.png and <name>_right.png",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        default=-1,
        help="Number of worker threads (-1 uses one per CPU)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Process only the first N .wav files",
    )
    parser.add_argument(
        "--no-report",
        action="store_true",
        help="Skip writing the CSV report",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=DEFAULT_LOG_DIR,
        help="Directory for the error log",
    )
    parser.add_argument("--verbose", action="store_true", help="Log WAV header details")
    args = parser.parse_args(argv)
    if args.width < 1 or args.height < 1:
        parser.error("--width and --height must be positive")
    if args.limit is not None and args.limit < 1:
        parser.error("--limit must be at least 1")
    return args


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_dir, verbose=args.verbose)

    try:
        results, summary = build_waveforms(
            args.input_dir,
            args.output_dir,
            width=args.width,
            height=args.height,
            channels=CHANNEL_CHOICES[args.channel],
            jobs=args.jobs,
            limit=args.limit,
        )
    except OSError as exc:
        logger.error("Could not read input directory: %s", exc)
        return 1

    if results and not args.no_report:
        export_report(results, args.output_dir)

    logger.info(
        "Files processed: %s | Images written: %s | Errors: %s",
        summary["processed"],
        summary["valid"],
        summary["failed"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
