"""Command-Line Interface handler for SubStudio."""

import argparse
import logging
import os
import sys
from typing import List, Optional, Tuple

from .client import SubStudioClient
from .config_loader import AppConfig, load_app_config
from .exceptions import SubStudioError, ConfigurationError
from .log_setup import setup_logging
from .services import Services, build_services
from .subtitle_generator import SubtitleGenerator
from .translator import PROVIDERS, PROVIDER_CHATGPT

logger = logging.getLogger(__name__) # Get logger for this module

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by every entry point."""
    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to the configuration YAML file."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=LOG_LEVELS,
        help="Set the logging level for console and file output."
    )


def add_generation_arguments(parser: argparse.ArgumentParser) -> None:
    """Options controlling transcription and translation of a media file."""
    parser.add_argument(
        "-o", "--output-dir",
        required=True,
        help="Directory to save the generated subtitle files (.srt)."
    )
    parser.add_argument(
        "--language",
        default=None,
        help="Spoken language code (e.g. 'en'); detected when omitted."
    )
    parser.add_argument(
        "--target-language",
        default=None,
        help="Also write subtitles translated into this language code."
    )
    parser.add_argument(
        "--provider",
        default=PROVIDER_CHATGPT,
        choices=list(PROVIDERS),
        help="Translation provider."
    )
    parser.add_argument(
        "--bilingual",
        action="store_true",
        help="Also write a subtitle file showing original and translation together."
    )
    parser.add_argument(
        "--server",
        default=None,
        help="Base URL of a running SubStudio server; process locally when omitted."
    )
    parser.add_argument(
        "--temp-dir",
        default=None, # Default taken from config file
        help="Override the temporary directory specified in the config file."
    )


def configure(args: argparse.Namespace, default_log_file: str) -> AppConfig:
    """
    Sets up logging, loads the config and applies CLI overrides.

    Logging starts with a bootstrap file so config errors are recorded, then is
    re-initialised with the paths named in the config.
    """
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    setup_logging(log_level=log_level, log_dir='logs', log_file='substudio_init.log')

    try:
        config = load_app_config(args.config)
    except ConfigurationError as e:
        logger.critical(f"Failed to load configuration from {args.config}: {e}", exc_info=True)
        sys.exit(1)

    log_file = config.log_file if config.log_file != AppConfig.log_file else default_log_file
    setup_logging(log_level=log_level, log_dir=config.log_dir, log_file=log_file)
    logger.info("Logging re-configured with settings from config file.")

    if getattr(args, "temp_dir", None):
        logger.info(f"Overriding temp_dir from config with CLI argument: {args.temp_dir}")
        config.temp_dir = args.temp_dir
    return config


def build_generator(config: AppConfig, server: Optional[str]) -> Tuple[SubtitleGenerator, object]:
    """
    Creates a generator backed by a remote server or by in-process services.

    Returns:
        The generator and the object to close when done.

    Raises:
        ConfigurationError: For local processing without an OpenAI key.
    """
    if server:
        logger.info(f"Using SubStudio server at {server}")
        client = SubStudioClient(server, timeout=config.request_timeout_seconds)
        return SubtitleGenerator(transcriber=client, translator=client), client

    services: Services = build_services(config)
    try:
        transcription = services.require_transcription()
    except ConfigurationError:
        services.close()
        raise
    return SubtitleGenerator(transcriber=transcription, translator=services.translation), services


class CLIHandler:
    """Parses arguments and runs the requested SubStudio command."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            prog="substudio",
            description="SubStudio: transcribe, translate and export subtitles for video and audio files.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter # Show defaults in help
        )
        subparsers = parser.add_subparsers(dest="command", required=True)

        serve = subparsers.add_parser(
            "serve",
            help="Run the HTTP API server.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter
        )
        add_common_arguments(serve)
        serve.add_argument("--host", default=None, help="Bind address (config 'host' when omitted).")
        serve.add_argument("--port", type=int, default=None, help="Bind port (config 'port' when omitted).")
        serve.add_argument("--reload", action="store_true", help="Reload on code changes (development).")

        generate = subparsers.add_parser(
            "generate",
            help="Generate subtitle files for one media file.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter
        )
        add_common_arguments(generate)
        generate.add_argument(
            "-i", "--input",
            required=True,
            help="Path to the input video or audio file."
        )
        add_generation_arguments(generate)
        return parser

    def _serve(self, args: argparse.Namespace, config: AppConfig) -> int:
        from .server import CONFIG_PATH_ENV, run

        # The uvicorn factory reloads the config itself.
        os.environ[CONFIG_PATH_ENV] = args.config
        host = args.host or config.host
        port = args.port or config.port
        logger.info(f"Starting SubStudio server on {host}:{port}")
        run(host=host, port=port, reload=args.reload)
        return 0

    def _generate(self, args: argparse.Namespace, config: AppConfig) -> int:
        if not os.path.isfile(args.input):
            logger.critical(f"Input file not found or is not a file: {args.input}")
            return 1

        generator, closeable = build_generator(config, args.server)
        try:
            written = generator.generate(
                args.input,
                args.output_dir,
                language=args.language,
                target_language=args.target_language,
                provider=args.provider,
                bilingual=args.bilingual,
            )
        finally:
            closeable.close()
        for kind, path in written.items():
            logger.info(f"{kind.capitalize()} subtitles saved to: {path}")
        logger.info("SubStudio finished successfully.")
        return 0

    def run(self, argv: Optional[List[str]] = None) -> int:
        """
        Parses arguments, sets up logging, loads config and runs the command.

        Returns:
            Process exit code: 0 on success, 1 for application errors,
            2 for unexpected crashes.
        """
        args = self.parser.parse_args(argv)
        config = configure(args, default_log_file="substudio.log")

        try:
            if args.command == "serve":
                return self._serve(args, config)
            return self._generate(args, config)
        except SubStudioError as e:
            # Catch errors originating from our application logic
            logger.error(f"A SubStudio error occurred: {e.message}" + (f" ({e.suggestion})" if e.suggestion else ""))
            return 1
        except FileNotFoundError as e:
            logger.error(str(e))
            return 1
        except KeyboardInterrupt:
            logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
            return 1
        except Exception as e:
            # Catch any other unexpected errors
            logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
            return 2 # Use a different exit code for unexpected crashes


def main() -> None:
    sys.exit(CLIHandler().run())
