import logging
import shutil
from pathlib import Path

logger = logging.getLogger("dyad-ci")


def create_dir(path: Path):
    path.mkdir(parents=True, exist_ok=True)


def create_file(path: Path, content: str):
    create_dir(path.parent)
    path.write_text(content)
    logger.debug(f"created file {path}")


def path_to_binary(name: str) -> Path | None:
    """Absolute path of `name` on PATH, or `None` if it is not installed."""
    found = shutil.which(name)
    if found is None:
        return None
    return Path(found)


def is_empty_dir(path: Path) -> bool:
    return path.is_dir() and not any(path.iterdir())
