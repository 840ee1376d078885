"""Migration file model and the pending/applied set algebra."""

import os
from pathlib import Path

from jinja2 import Template, TemplateError
from pydantic import BaseModel, Field, model_validator

from .constants import TEMPLATE_SUFFIX, Direction
from .errors import TemplateRenderError


class Versions(list[int]):
    """Applied versions as reported by a driver, most recent first."""

    @property
    def latest(self) -> int:
        """Highest applied version, or 0 if nothing is applied."""
        return max(self, default=0)


class File(BaseModel):
    """One migration script on disk.

    Example filename: 20060102150405_create_users.up.sql
    """

    directory: Path
    filename: str
    version: int = Field(ge=0)
    name: str
    direction: Direction
    content: bytes | None = None

    @property
    def path(self) -> Path:
        """Full path to the file."""
        return self.directory / self.filename

    @property
    def is_template(self) -> bool:
        """Whether the file is rendered with the process environment on read."""
        return self.filename.endswith(TEMPLATE_SUFFIX)

    def read_content(self) -> bytes:
        """
        Load file content unless it is already populated.

        Template files are rendered with the current environment variables
        as context; the rendered text replaces the raw template.

        Returns:
            File content

        Raises:
            OSError: If the file cannot be read
            TemplateRenderError: If the template cannot be rendered
        """
        if self.content is not None:
            return self.content

        content = self.path.read_bytes()
        if self.is_template:
            try:
                template = Template(content.decode("utf-8"), keep_trailing_newline=True)
                rendered = template.render(dict(os.environ))
            except (TemplateError, UnicodeDecodeError) as e:
                raise TemplateRenderError(f"Failed to render template {self.filename!r}: {e}") from e
            content = rendered.encode("utf-8")

        self.content = content
        return content


class MigrationFile(BaseModel):
    """Up and down files sharing one version."""

    version: int = Field(ge=0)
    up_file: File | None = None
    down_file: File | None = None

    @model_validator(mode="after")
    def check_files(self) -> "MigrationFile":
        """Require at least one file, all of the same version."""
        if self.up_file is None and self.down_file is None:
            raise ValueError(f"migration {self.version} has neither an up nor a down file")
        for f in (self.up_file, self.down_file):
            if f is not None and f.version != self.version:
                raise ValueError(f"file {f.filename!r} does not belong to version {self.version}")
        return self

    def file_for(self, direction: Direction) -> File | None:
        """Return the file for the given direction, if present."""
        return self.up_file if direction is Direction.UP else self.down_file


class MigrationFiles(list[MigrationFile]):
    """Migration files in ascending version order."""

    def pending(self, versions: Versions) -> list[File]:
        """
        Up files whose version is not applied, oldest first.

        Args:
            versions: Applied versions

        Returns:
            Up files to apply, ascending by version
        """
        applied = set(versions)
        return [
            mf.up_file
            for mf in sorted(self, key=lambda mf: mf.version)
            if mf.version not in applied and mf.up_file is not None
        ]

    def applied(self, versions: Versions) -> list[File]:
        """
        Down files whose version is applied, newest first.

        Args:
            versions: Applied versions

        Returns:
            Down files to run, descending by version
        """
        applied = set(versions)
        return [
            mf.down_file
            for mf in sorted(self, key=lambda mf: mf.version, reverse=True)
            if mf.version in applied and mf.down_file is not None
        ]

    def relative(self, relative_n: int, versions: Versions) -> list[File]:
        """
        Travel relatively through migration files.

        +n fetches the next n up files, -n the previous n down files.
        Asking for more steps than available returns what there is.

        Args:
            relative_n: Number of steps, signed
            versions: Applied versions

        Returns:
            Files to run, in execution order
        """
        if relative_n > 0:
            return self.pending(versions)[:relative_n]
        if relative_n < 0:
            return self.applied(versions)[:-relative_n]
        return []

    @property
    def latest(self) -> int:
        """Highest version on disk, or 0 if the directory holds none."""
        return max((mf.version for mf in self), default=0)
