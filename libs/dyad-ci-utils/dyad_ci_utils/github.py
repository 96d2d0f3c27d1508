import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from dyad_ci_utils.cmd import invoke_command
from dyad_ci_utils.file import path_to_binary
from dyad_ci_utils.kinds import StatusState

logger = logging.getLogger("dyad-ci")

GITHUB_API_URL = "https://api.github.com"
STATUS_USER_AGENT = "Dyad Demo Bot"
CURL_TIMEOUT = 30  # seconds

REPOSITORY_PATTERN = re.compile(r"^(?:https?://)?(?:github\.com/)?([^/\s]+)/([^/\s]+?)(?:\.git)?/?$")


# ---------------------------------------------------------------------------- #
#                                Event Context                                 #
# ---------------------------------------------------------------------------- #


@dataclass(frozen=True)
class GitHubContext:
    """The subset of the GitHub Actions environment needed to annotate a commit."""

    event_name: str | None = None
    event_path: Path | None = None
    sha: str | None = None
    repository: str | None = None
    token: str | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "GitHubContext":
        env = os.environ if env is None else env
        event_path = env.get("GITHUB_EVENT_PATH")
        return GitHubContext(
            event_name=env.get("GITHUB_EVENT_NAME"),
            event_path=Path(event_path) if event_path else None,
            sha=env.get("GITHUB_SHA"),
            repository=env.get("GITHUB_REPOSITORY"),
            token=env.get("GITHUB_TOKEN"),
        )


def _pull_request_head_sha(event: Any) -> str | None:
    try:
        sha = event["pull_request"]["head"]["sha"]
    except (KeyError, TypeError):
        return None
    return sha if isinstance(sha, str) and sha else None


def resolve_commit_sha(context: GitHubContext) -> str | None:
    """
    The commit a status should be attached to:
      * `pull_request`: head of the pull request, read from the event payload
      * `push`: `GITHUB_SHA`
      * anything else: `None`
    Raises `OSError` / `json.JSONDecodeError` if the event file is unreadable.
    """
    if context.event_name == "pull_request":
        if context.event_path is None:
            return None
        event = json.loads(context.event_path.read_text())
        return _pull_request_head_sha(event)
    if context.event_name == "push":
        return context.sha or None
    return None


def split_repository(repository: str) -> tuple[str, str] | None:
    """`owner/repo` (or a github.com URL) into its two parts."""
    matched = REPOSITORY_PATTERN.match(repository.strip())
    if matched is None:
        return None
    return matched.group(1), matched.group(2)


# ---------------------------------------------------------------------------- #
#                                Status Posting                                #
# ---------------------------------------------------------------------------- #


def build_status_payload(name: str, state: StatusState | str) -> dict[str, str]:
    state = StatusState(state)
    return {
        "context": name,
        "state": state.value,
        "description": state.describe(name),
    }


def status_url(owner: str, repo: str, sha: str) -> str:
    return f"{GITHUB_API_URL}/repos/{owner}/{repo}/statuses/{sha}"


def build_curl_command(
    curl: Path | str, url: str, payload: dict[str, str], token: str
) -> list[str]:
    return [
        str(curl),
        "-sX",
        "POST",
        "--fail-with-body",
        "-H",
        f"Authorization: token {token}",
        "-H",
        f"User-Agent: {STATUS_USER_AGENT}",
        "-H",
        "Content-Type: application/json",
        "-d",
        json.dumps(payload),
        url,
    ]


def post_github_status(
    name: str, state: StatusState | str, source: str, sha: str, token: str
) -> bool:
    """POST one commit status through `curl`. Returns `False` without side
    effects when `curl` is missing or `source` is not `owner/repo`."""
    curl = path_to_binary("curl")
    if curl is None:
        logger.debug("curl not found, not posting status")
        return False

    parts = split_repository(source)
    if parts is None:
        logger.debug(f"unable to parse repository '{source}'")
        return False
    owner, repo = parts

    payload = build_status_payload(name, state)
    command = build_curl_command(curl, status_url(owner, repo, sha), payload, token)
    status = invoke_command(command, timeout=CURL_TIMEOUT, is_log_debug=False, secrets=[token])
    logger.debug(f"Response of curl POST request: {status.stdout}")
    if status.is_failure():
        logger.debug(f"curl exited with {status.returncode}: {status.stderr}")
    return not status.is_failure()


def post_status(
    name: str,
    state: StatusState | str,
    *,
    env: Mapping[str, str] | None = None,
    repo: str | None = None,
    default_repo: str | None = None,
    sha: str | None = None,
) -> bool:
    """
    Best-effort commit status for the current workflow run. The target is
    `repo` if given, then `GITHUB_REPOSITORY`, then `default_repo`. Every failure
    (missing event data, no token, unsupported state, network error) is
    logged at debug level and reported as `False`; nothing is raised so a
    broken notification never breaks the build.
    """
    try:
        context = GitHubContext.from_env(env)
        if sha is None:
            sha = resolve_commit_sha(context)
        if sha is None:
            logger.debug(f"no commit to annotate for status {name}")
            return False
        if not context.token:
            logger.debug("GITHUB_TOKEN not set, not posting status")
            return False
        source = repo or context.repository or default_repo
        if not source:
            logger.debug("no repository to post status to")
            return False
        posted = post_github_status(name, state, source, sha, context.token)
        if posted:
            logger.info(f"posted status {name}: {StatusState(state).value}")
        return posted
    except Exception as e:
        logger.debug(f"Failed to post status {name}: {e}")
        return False
