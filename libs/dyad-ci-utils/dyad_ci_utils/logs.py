import logging
import os
import sys
from contextlib import contextmanager
from typing import Iterator, Mapping, TextIO

LOGGER_NAME = "dyad-ci"

logger = logging.getLogger(LOGGER_NAME)

# ---------------------------------------------------------------------------- #
#                            GitHub Actions Helpers                            #
# ---------------------------------------------------------------------------- #


def is_github_actions(env: Mapping[str, str] | None = None) -> bool:
    env = os.environ if env is None else env
    return env.get("GITHUB_ACTIONS", "false") == "true"


def escape_workflow_data(message: str) -> str:
    """Escape a message so it fits into a single workflow command line."""
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class GitHubActionsFormatter(logging.Formatter):
    """Renders records as GitHub Actions workflow commands, so errors and
    warnings show up as annotations on the run summary."""

    COMMANDS = {
        logging.DEBUG: "debug",
        logging.WARNING: "warning",
        logging.ERROR: "error",
        logging.CRITICAL: "error",
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        command = self.COMMANDS.get(record.levelno)
        if command is None:
            return message
        return f"::{command}::{escape_workflow_data(message)}"


# ---------------------------------------------------------------------------- #
#                                Logger Config                                 #
# ---------------------------------------------------------------------------- #


def verbosity_to_level(verbosity: int) -> int:
    verbosity = min(max(0, verbosity), 2)
    return {0: logging.ERROR, 1: logging.INFO, 2: logging.DEBUG}[verbosity]


def configure_logging(
    prefix: str,
    verbosity: int,
    *,
    github_actions: bool | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    if github_actions is None:
        github_actions = is_github_actions()

    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(stream)
    if github_actions:
        formatter: logging.Formatter = GitHubActionsFormatter("%(message)s")
    else:
        formatter = logging.Formatter(f"[{prefix} %(asctime)s ~ %(levelname)s]: %(message)s")
    console_handler.setFormatter(formatter)
    console_handler.setLevel(verbosity_to_level(verbosity))
    logger.addHandler(console_handler)
    return logger


# ---------------------------------------------------------------------------- #
#                                 Log Grouping                                 #
# ---------------------------------------------------------------------------- #


@contextmanager
def group(
    title: str, *, github_actions: bool | None = None, stream: TextIO | None = None
) -> Iterator[None]:
    """Fold everything logged inside the block under `title`.

    On GitHub Actions this emits `::group::` / `::endgroup::`; elsewhere the
    group is only marked with a banner in the log.
    """
    if github_actions is None:
        github_actions = is_github_actions()
    stream = sys.stdout if stream is None else stream

    if github_actions:
        stream.write(f"::group::{title}\n")
        stream.flush()
    else:
        logger.info(f"=== {title} ===")
    try:
        yield
    finally:
        if github_actions:
            stream.write("::endgroup::\n")
            stream.flush()
