import logging
from pathlib import Path

from dyad_ci_utils.cmd import ExecStatus, invoke_command

logger = logging.getLogger("dyad-ci")


# ---------------------------------------------------------------------------- #
#                                 Git Exception                                #
# ---------------------------------------------------------------------------- #


class GitException(Exception):
    pass


# ---------------------------------------------------------------------------- #
#                           Git Private Local Helper                           #
# ---------------------------------------------------------------------------- #


def __git_check_for_failure(status: ExecStatus, error_msg: str, exception_msg: str):
    if status.is_failure():
        logger.error(error_msg)
        logger.info("=== STDOUT ===")
        logger.info(status.stdout)
        logger.info("=== STDERR ===")
        logger.info(status.stderr)
        logger.info("==============")
        raise GitException(exception_msg)


# ---------------------------------------------------------------------------- #
#                             Git Helper Functions                             #
# ---------------------------------------------------------------------------- #


def git_rev_parse(repo_dir: Path, ref: str = "HEAD") -> str:
    status = invoke_command(["git", "rev-parse", "--verify", ref], cwd=repo_dir)
    __git_check_for_failure(
        status,
        f"Unable to resolve {ref} in git repository {repo_dir}",
        f"Unable to resolve git ref {ref}",
    )
    return status.stdout.strip()


# ---------------------------------------------------------------------------- #
