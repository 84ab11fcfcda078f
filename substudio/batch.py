"""
SubStudio batch processing.

Processes every supported video and audio file in a directory, smallest
first, writing subtitles for each into the output directory.
"""

import argparse
import logging
import os
import sys
import time
from typing import List, Optional, Tuple

# Progress bar library
from tqdm import tqdm

from .cli import add_common_arguments, add_generation_arguments, build_generator, configure
from .exceptions import SubStudioError
from .media import AUDIO_EXTENSIONS, VIDEO_EXTENSIONS

logger = logging.getLogger(__name__)


def find_and_sort_media(input_dir: str) -> List[Tuple[str, int]]:
    """
    Finds all supported media files in the input directory and sorts them by size.

    Args:
        input_dir: The directory to search for media files.

    Returns:
        A list of (filepath, filesize) tuples, smallest first.

    Raises:
        FileNotFoundError: If the input directory doesn't exist.
        ValueError: If the input path is not a directory.
    """
    if not os.path.exists(input_dir):
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    if not os.path.isdir(input_dir):
        raise ValueError(f"Input path is not a directory: {input_dir}")

    media = []
    logger.info(f"Scanning directory for media files: {input_dir}")
    for filename in os.listdir(input_dir):
        if not filename.lower().endswith(VIDEO_EXTENSIONS + AUDIO_EXTENSIONS):
            continue
        filepath = os.path.join(input_dir, filename)
        try:
            if os.path.isfile(filepath): # Ensure it's actually a file
                media.append((filepath, os.path.getsize(filepath)))
        except OSError as e:
            logger.warning(f"Could not access file {filepath}: {e}. Skipping.")

    media.sort(key=lambda item: item[1])
    logger.info(f"Found {len(media)} media files. Sorted by size (smallest first).")
    return media


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="substudio-batch",
        description="SubStudio Batch: generate subtitles for every video and audio file in a directory.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "-i", "--input-dir",
        required=True,
        help="Directory containing the input media files."
    )
    add_common_arguments(parser)
    add_generation_arguments(parser)
    return parser


def run_batch_processing(argv: Optional[List[str]] = None) -> int:
    """Parses arguments, sets up, and runs the batch subtitle generation."""
    args = create_parser().parse_args(argv)
    config = configure(args, default_log_file="substudio_batch.log")

    try:
        media_files = [path for path, _ in find_and_sort_media(args.input_dir)]
    except (FileNotFoundError, ValueError) as e:
        logger.critical(str(e))
        return 1
    if not media_files:
        logger.warning(f"No supported media files found in {args.input_dir}. Nothing to do.")
        return 0

    # Components are built once and reused for every file.
    try:
        generator, closeable = build_generator(config, args.server)
    except SubStudioError as e:
        logger.critical(f"Failed to initialize SubStudio components: {e.message}")
        return 1

    total_files = len(media_files)
    files_processed = 0
    files_failed = 0
    batch_start_time = time.time()
    logger.info(f"--- Starting Batch Subtitle Generation for {total_files} files ---")

    try:
        with tqdm(total=total_files, unit="file", desc="Starting Batch") as pbar:
            for media_path in media_files:
                filename = os.path.basename(media_path)
                pbar.set_description(f"Processing: {filename[:30]}...")
                try:
                    generator.generate(
                        media_path,
                        args.output_dir,
                        language=args.language,
                        target_language=args.target_language,
                        provider=args.provider,
                        bilingual=args.bilingual,
                    )
                    files_processed += 1
                except (SubStudioError, FileNotFoundError) as e:
                    logger.error(f"Subtitle generation failed for '{filename}': {e}")
                    files_failed += 1
                except Exception as e:
                    logger.error(f"An unexpected error occurred processing '{filename}': {e}", exc_info=True)
                    files_failed += 1
                finally:
                    pbar.update(1) # Increment progress bar regardless of success/failure
    except KeyboardInterrupt:
        logger.warning("Batch process interrupted by user (Ctrl+C). Exiting.")
        return 1
    finally:
        closeable.close()

    logger.info("--- Batch Subtitle Generation Finished ---")
    logger.info(f"Total time: {time.time() - batch_start_time:.2f} seconds")
    logger.info(f"Successfully processed: {files_processed}/{total_files} files")
    logger.info(f"Failed: {files_failed}/{total_files} files")
    # Partial failure is signalled by the exit code.
    return 1 if files_failed else 0


def main() -> None:
    sys.exit(run_batch_processing())
