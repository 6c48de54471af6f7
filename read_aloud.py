"""Read text aloud with word highlighting in the terminal.

Speaks the given text with the provider configured in speechsync.ini and prints each word
as the audio reaches it. Intended for trying out providers and catalogs from the console.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Final, NoReturn

from config.loader import Config, ConfigLoader, ConfigLoaderError
from core.catalog.resolver import CatalogError
from core.speech.interface import TTSExceptionError
from core.speech.manager import SpeechManager
from core.version import VERSION
from utils.file_utils import FileUtils
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.speech_models import PlaybackState

CFG_FILE: Final[str] = "speechsync.ini"

logger: logging.Logger = LoggerUtils.get_logger(__name__)


def check_python_version() -> None:
    """Check if Python version is 3.13 or later.

    Raises:
        RuntimeError: If Python version is below 3.13.
    """
    if sys.version_info < (3, 13):
        msg = "Python 3.13 or later is required"
        raise RuntimeError(msg)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        print(f"\n{message}\n", file=sys.stderr)
        self.print_help(sys.stderr)
        raise SystemExit(2)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments.
    """
    parser = _ArgumentParser(
        description="Read text aloud and print each word as it is spoken",
        epilog='Example: python read_aloud.py "Hello world" --provider gtts --rate 1.5',
    )
    parser.add_argument("text", metavar="TEXT", help="Text to speak")
    parser.add_argument("--config", dest="config", default=CFG_FILE, metavar="FILE", help="Configuration file")
    parser.add_argument("--provider", dest="provider", metavar="NAME", help="Override the configured provider")
    parser.add_argument("--rate", dest="rate", type=float, metavar="RATE", help="Playback rate (0.25-4.0)")
    parser.add_argument("--catalog-id", dest="catalog_id", metavar="ID", help="Speak the catalog's spoken form")
    parser.add_argument("--language", dest="language", metavar="LANG", help="Language code, e.g. en-US")
    parser.add_argument("--debug", dest="debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Load configuration file and apply CLI overrides.

    Args:
        args: Command-line arguments.

    Returns:
        Config: Configuration object.

    Raises:
        ConfigLoaderError: If configuration file cannot be loaded.
    """
    script_name: str = Path(sys.argv[0]).stem
    config: Config = ConfigLoader(
        config_filename=str(FileUtils.resolve_path(args.config)),
        script_name=script_name,
        provider=args.provider,
        rate=args.rate,
        debug=args.debug,
    ).config
    config.GENERAL.VERSION = VERSION
    return config


class _WordPrinter:
    """Prints the word under the highlight cursor."""

    def __init__(self, text: str) -> None:
        self.text: str = text

    def on_boundary(self, offset_start: int, offset_length: int) -> None:
        print(self.text[offset_start : offset_start + offset_length], end=" ", flush=True)

    @staticmethod
    def on_state(state: PlaybackState) -> None:
        logger.debug("Playback state: %s", state)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        int: Process exit status.
    """
    check_python_version()
    args: argparse.Namespace = parse_arguments(argv)
    try:
        config: Config = load_config(args)
    except ConfigLoaderError as err:
        print("\nError: Failed to load configuration file.", file=sys.stderr)
        print(f"Details: {err}", file=sys.stderr)
        return 1

    LoggerUtils.setup(
        filename=FileUtils.resolve_path(config.GENERAL.LOG_FILE) if config.GENERAL.LOG_FILE else "",
        level=config.GENERAL.LOG_LEVEL,
        debug=config.GENERAL.DEBUG,
    )
    logger.info("%s %s started with provider '%s'", config.GENERAL.SCRIPT_NAME, VERSION, config.GENERAL.PROVIDER)

    manager = SpeechManager(config)
    try:
        await manager.initialize()
        service = manager.service

        # Offsets refer to the text actually spoken, which a catalog may have replaced
        spoken: str = manager.catalog_resolver.resolve_text(args.text, args.catalog_id, args.language)
        printer = _WordPrinter(spoken)
        service.on_word_boundary(printer.on_boundary)
        service.on_state_change(printer.on_state)
        if not service.get_capabilities().supports_word_boundary:
            print(spoken)

        await service.speak(args.text, catalog_id=args.catalog_id, language=args.language)
        print()
    except (CatalogError, TTSExceptionError) as err:
        print(f"\nError: {err}", file=sys.stderr)
        return 1
    finally:
        await manager.close()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\n\nCancelled by user.", file=sys.stderr)
        sys.exit(130)
