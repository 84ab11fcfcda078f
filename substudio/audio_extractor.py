"""Handles audio extraction from video files using ffmpeg."""

import ffmpeg
import os
import logging
from .exceptions import AudioExtractionError
from typing import Optional
from .utils import ensure_dir_exists, remove_quietly

logger = logging.getLogger(__name__)


class AudioExtractor:
    """Extracts a compact speech track from a video so the upload to the provider is smaller."""

    def __init__(self, ffmpeg_path: Optional[str] = None, bitrate: str = "64k"):
        """
        Initializes the AudioExtractor.

        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
            bitrate: MP3 bitrate of the extracted track.
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        self.bitrate = bitrate
        logger.info(f"Using ffmpeg command: {self.ffmpeg_cmd}")

    def extract_audio(self, video_filepath: str, output_audio_dir: str, output_filename: Optional[str] = None) -> str:
        """
        Extracts the audio stream from a video file to a mono 16 kHz MP3.

        Args:
            video_filepath: Path to the input video file.
            output_audio_dir: Directory to save the extracted audio file.
            output_filename: Optional base name for the output audio file.
                             If None, uses the video filename.

        Returns:
            The full path to the extracted audio file.

        Raises:
            FileNotFoundError: If the input video file does not exist.
            AudioExtractionError: If ffmpeg fails to extract the audio.
        """
        logger.info(f"Starting audio extraction for: {video_filepath}")
        if not os.path.exists(video_filepath):
            raise FileNotFoundError(f"Input video file not found: {video_filepath}")

        ensure_dir_exists(output_audio_dir)

        if output_filename is None:
            base_name = os.path.splitext(os.path.basename(video_filepath))[0]
        else:
            base_name = os.path.splitext(output_filename)[0]
        output_audio_path = os.path.join(output_audio_dir, f"{base_name}.mp3")

        try:
            # ar=16000, ac=1: speech-to-text providers resample to this anyway
            (
                ffmpeg
                .input(video_filepath)
                .output(output_audio_path, acodec='libmp3lame', audio_bitrate=self.bitrate, ar=16000, ac=1, vn=None)
                .overwrite_output()
                .run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
            )
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffmpeg error during audio extraction for {video_filepath}: {stderr_output}")
            remove_quietly(output_audio_path)
            raise AudioExtractionError(f"ffmpeg failed: {stderr_output}") from e
        except OSError as e:
            # ffmpeg binary missing or not executable
            remove_quietly(output_audio_path)
            raise AudioExtractionError(f"Could not run {self.ffmpeg_cmd}: {e}") from e

        logger.info(f"Successfully extracted audio to: {output_audio_path}")
        return output_audio_path
