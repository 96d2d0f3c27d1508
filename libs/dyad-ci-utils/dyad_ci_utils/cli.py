import argparse
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from dyad_ci_utils.common import parse_hms_as_seconds
from dyad_ci_utils.logs import configure_logging


class CIClient(ABC):
    """Base class for a CI command line client. Handles argument parsing,
    logger setup and dispatch to the subcommands of the concrete client.
    """

    prog: str
    description: str
    logger_prefix: str

    verbosity: int

    argument_parser: argparse.ArgumentParser
    args: argparse.Namespace

    def __init__(self, prog: str, description: str, logger_prefix: str):
        self.prog = prog
        self.description = description
        self.logger_prefix = logger_prefix
        self.verbosity = 1

        self.argument_parser = self.generate_parser()
        self.args = argparse.Namespace()

    def set_logger_config(self) -> logging.Logger:
        return configure_logging(self.logger_prefix, self.verbosity)

    def add_shared_flags(self, subparser: argparse.ArgumentParser):
        subparser.add_argument("-v", "--verbosity", default=1, choices=[0, 1, 2], type=int)

    def add_root_flag(self, subparser: argparse.ArgumentParser, help_text: str):
        subparser.add_argument(
            "-r", "--root", metavar="ROOT_DIR", type=str, default=".", help=help_text
        )

    def extract_dir(self, value: str, flag: str) -> Path:
        path = Path(value).absolute()
        if not path.is_dir():
            self.argument_parser.error(f"{flag} requires an existing directory, got '{value}'!")
        return path

    def extract_timeout(self, value: str | None) -> int | None:
        if value is None:
            return None
        seconds = parse_hms_as_seconds(value)
        if seconds is None or seconds <= 0:
            self.argument_parser.error(
                f"--timeout expects a duration like '1h30m' or '45m', got '{value}'!"
            )
        return seconds

    def generate_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(prog=self.prog, description=self.description)
        subparsers = parser.add_subparsers(required=True, dest="command")
        self.add_commands(subparsers)
        return parser

    def start(self, argv: list[str] | None = None) -> int:
        self.args = self.argument_parser.parse_args(argv)
        self.verbosity = self.args.verbosity
        self.set_logger_config()
        return self.dispatch(self.args.command)

    @abstractmethod
    def add_commands(self, subparsers: argparse._SubParsersAction):
        """Register the subcommands of the client"""
        raise NotImplementedError()

    @abstractmethod
    def dispatch(self, command: str) -> int:
        """Run the parsed subcommand and return the process exit code"""
        raise NotImplementedError()
