"""Entry point for running the reloader standalone."""

import shlex
import signal
import subprocess
import sys
from collections.abc import Callable

import structlog

from reloader.config import Settings
from reloader.errors import ReloaderError
from reloader.lifecycle import GracefulShutdown
from reloader.logging import configure_logging
from reloader.reloader import Reloader

logger = structlog.get_logger()


def command_callback(command: str) -> Callable[[], None]:
    """Build a rebuild callback that runs a shell command.

    Args:
        command: Command line, split with shell quoting rules.

    Returns:
        Callback raising CalledProcessError when the command fails.
    """
    argv = shlex.split(command)

    def rebuild() -> None:
        if not argv:
            return
        logger.info("rebuild_command_started", command=command)
        subprocess.run(argv, check=True)

    return rebuild


def serve(settings: Settings) -> int:
    """Run the reloader until SIGINT or SIGTERM.

    Args:
        settings: Reloader configuration.

    Returns:
        Process exit code.
    """
    shutdown = GracefulShutdown(timeout=settings.shutdown_timeout, name="cli")
    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, lambda *_: shutdown.trigger())

    try:
        reloader = Reloader(command_callback(settings.rebuild_command), settings=settings)
    except ReloaderError as e:
        logger.error("reloader_start_failed", error=str(e))
        return 1

    with reloader:
        for path in settings.watch_paths:
            try:
                reloader.add(path)
            except ReloaderError as e:
                logger.error("watch_add_failed", path=path, error=str(e))
                return 1
        logger.info(
            "reloader_ready",
            url=reloader.url,
            watching=list(reloader.watched_paths),
        )
        shutdown.wait_forever()

    return 0


def main() -> None:
    """Entry point for python -m reloader."""
    settings = Settings(enable_logging=True)
    configure_logging(debug=settings.debug)
    sys.exit(serve(settings))


if __name__ == "__main__":
    main()
