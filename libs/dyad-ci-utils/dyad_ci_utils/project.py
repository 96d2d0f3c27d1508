from abc import ABC, abstractmethod
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

# ---------------------------------------------------------------------------- #
#                               Project Generators                             #
# ---------------------------------------------------------------------------- #


class AbstractProjectGenerator(ABC):
    __root: Path
    __template_env: Environment

    def __init__(self, root: Path, template_dir: Path):
        self.__root = root
        self.__template_env = Environment(
            loader=FileSystemLoader(template_dir),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )

    def render_template(self, template_name: str, **kwargs) -> str:
        template = self.__template_env.get_template(template_name)
        return template.render(**kwargs)

    @abstractmethod
    def create(self) -> list[Path]:
        raise NotImplementedError()

    @property
    def root(self) -> Path:
        return self.__root
