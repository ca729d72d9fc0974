"""
Interface to create models with associated .yaml storage.
"""

from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import BaseModel

__all__ = [
    "BaseYamlModel",
]


class BaseYamlModel(BaseModel):
    """
    Base pydantic model with additional functionality to load from and dump to
    .yaml file.
    """

    @classmethod
    def load_yaml(cls, file: Path, **overrides: Any) -> Self:
        """
        Load model from .yaml file. Keyword arguments are applied on top of
        the file's contents, e.g. for values derived from the file's location.
        """
        assert file.is_file(), f"Not a file: {file}"

        with file.open() as fh:
            model = yaml.safe_load(fh)

        if model is None:
            model = {}

        if not isinstance(model, dict):
            raise ValueError(f"Invalid yaml contents: {model}")

        return cls(**(model | overrides))

    def dump_yaml(self, file: Path):
        """
        Dump model to .yaml file.
        """
        file.write_text(self.to_yaml())

    def to_yaml(self) -> str:
        model = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return yaml.safe_dump(model, default_flow_style=False, sort_keys=False)
