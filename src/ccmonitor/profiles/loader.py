"""Reads launch profiles from YAML directories and turns them into launch specs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

import yaml
from pydantic import ValidationError

from ..terminal.utils import split_command_line
from .models import LaunchProfile, LaunchSpec

logger = logging.getLogger(__name__)

PROFILE_SUFFIXES = frozenset({".yml", ".yaml"})


class ProfileLoadError(RuntimeError):
    """Raised when a profile file is unusable or a requested profile is unknown."""


def build_launch(
    profile: LaunchProfile | None,
    *,
    shell: str,
    startup_command: str = "",
) -> LaunchSpec:
    """Combine a profile with the server-wide shell and startup command.

    Profile values win when set; an empty ``startup_command`` on the profile
    disables the server default rather than falling back to it.
    """

    if profile is None:
        return LaunchSpec(argv=tuple(split_command_line(shell)), startup_command=startup_command)
    return LaunchSpec(
        argv=tuple(split_command_line(profile.shell or shell)),
        startup_command=startup_command if profile.startup_command is None else profile.startup_command,
        env=dict(profile.env),
        profile_id=profile.id,
    )


class ProfileLoader:
    """Launch profile catalog backed by directories of YAML files.

    Directories are re-read on every lookup so edited profiles apply to the
    next session without a restart. When two files declare the same id, the
    one from the later directory wins.
    """

    def __init__(self, directories: Iterable[Path | str] | None = None) -> None:
        self._directories = [Path(directory) for directory in directories or ()]

    @property
    def search_paths(self) -> list[Path]:
        """Configured directories that currently exist."""

        return [directory for directory in self._directories if directory.is_dir()]

    def _profile_files(self) -> Iterator[Path]:
        for directory in self.search_paths:
            candidates = (path for path in directory.iterdir() if path.suffix in PROFILE_SUFFIXES)
            yield from sorted(path for path in candidates if path.is_file())

    @staticmethod
    def _read(path: Path) -> LaunchProfile | None:
        try:
            document = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ProfileLoadError(f"{path}: unreadable profile ({exc})") from exc
        if document is None:
            return None
        try:
            return LaunchProfile.model_validate(document)
        except ValidationError as exc:
            raise ProfileLoadError(f"{path}: invalid profile ({exc})") from exc

    def load_all(self) -> dict[str, LaunchProfile]:
        """Return every profile keyed by id; any broken file fails the whole load."""

        profiles: dict[str, LaunchProfile] = {}
        problems: list[str] = []
        for path in self._profile_files():
            try:
                profile = self._read(path)
            except ProfileLoadError as exc:
                problems.append(str(exc))
                continue
            if profile is None:
                continue
            if profile.id in profiles:
                logger.debug("Profile overridden", extra={"profile": profile.id, "path": str(path)})
            profiles[profile.id] = profile

        if problems:
            raise ProfileLoadError("; ".join(problems))
        return profiles

    def get(self, profile_id: str) -> LaunchProfile:
        profile = self.load_all().get(profile_id)
        if profile is None:
            raise ProfileLoadError(f"Profile '{profile_id}' not found in search paths")
        return profile


__all__ = ["LaunchProfile", "LaunchSpec", "ProfileLoadError", "ProfileLoader", "build_launch"]
