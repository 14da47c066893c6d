"""Job model and unattended-mode argument handling.

A Job is the immutable description of one build-and-publish request. It is
built once, from configured defaults merged with ``--key=value`` tokens,
and then passed explicitly to every component.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from autopublish.core.logging import get_logger

_logger = get_logger("job")

# Recognized unattended-mode keys -> Job field names
ARG_FIELDS: dict[str, str] = {
    "scene": "scene",
    "thumbnail": "thumbnail",
    "name": "name",
    "id": "content_id",
    "platform": "platform",
    "commitHash": "commit_hash",
}


class Platform(str, Enum):
    """Target build platform of a job."""

    PC = "pc"
    ANDROID = "android"

    @classmethod
    def parse(cls, value: str | Platform | None) -> Platform:
        """Coerce a user-supplied platform, falling back to PC.

        Unrecognized values are not an error: the job proceeds for PC and a
        warning is logged so the operator can spot the typo.
        """
        if isinstance(value, Platform):
            return value
        if value is None:
            return cls.PC
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        _logger.warning("job.unknown_platform", platform=value, using=cls.PC.value)
        return cls.PC


_BUILD_TARGETS: dict[Platform, str] = {
    Platform.PC: "StandaloneWindows64",
    Platform.ANDROID: "Android",
}


def build_target(platform: Platform) -> str:
    """Map a platform to the host's build-target identifier."""
    return _BUILD_TARGETS[platform]


class Job(BaseModel):
    """One build-and-publish request. Immutable once constructed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    scene: str = Field(min_length=1, description="Scene path inside the project")
    thumbnail: str = Field(min_length=1, description="Thumbnail image path inside the project")
    name: str = Field(min_length=1, description="Display name of the published content")
    content_id: str = Field(
        alias="id",
        description="Stable identifier of the published content, scopes consent",
    )
    platform: Platform = Platform.PC
    commit_hash: str | None = Field(
        default=None,
        description="Source reference to pin; None syncs to the branch tip",
    )

    @field_validator("platform", mode="before")
    @classmethod
    def _coerce_platform(cls, value: object) -> Platform:
        if value is None or isinstance(value, str | Platform):
            return Platform.parse(value)
        raise ValueError(f"platform must be a string, got {type(value).__name__}")

    @field_validator("commit_hash", mode="before")
    @classmethod
    def _blank_commit_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def build_target(self) -> str:
        return build_target(self.platform)

    @classmethod
    def from_args(cls, argv: Sequence[str], defaults: Job) -> Job:
        """Build a Job from ``--key=value`` tokens layered over defaults."""
        merged = defaults.model_dump()
        merged.update(parse_job_args(argv))
        return cls.model_validate(merged)

    def to_args(self, include_commit: bool = True) -> list[str]:
        """Render the job as ``--key=value`` tokens.

        The host entry point has no use for the commit pin (the tree is
        already synced when it runs), so the launcher leaves it out.
        """
        tokens = [
            f"--scene={self.scene}",
            f"--thumbnail={self.thumbnail}",
            f"--name={self.name}",
            f"--id={self.content_id}",
            f"--platform={self.platform.value}",
        ]
        if include_commit and self.commit_hash:
            tokens.append(f"--commitHash={self.commit_hash}")
        return tokens


def parse_job_args(argv: Iterable[str]) -> dict[str, str]:
    """Extract recognized ``--key=value`` tokens, keyed by Job field name.

    Unrecognized tokens are ignored. When a key repeats, the first
    occurrence wins.
    """
    found: dict[str, str] = {}
    for token in argv:
        if not token.startswith("--") or "=" not in token:
            continue
        key, value = token[2:].split("=", 1)
        field_name = ARG_FIELDS.get(key)
        if field_name is not None and field_name not in found:
            found[field_name] = value
    return found


__all__ = ["ARG_FIELDS", "Job", "Platform", "build_target", "parse_job_args"]
