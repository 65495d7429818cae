"""Configuration models describing SortRoot settings."""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DEFAULT_CATEGORY_TABLE: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    (
        "documents",
        "Documents",
        ("doc", "docx", "rtf", "txt", "md", "pdf", "odt", "xls", "xlsx", "ods", "csv", "ppt", "pptx", "epub"),
    ),
    ("images", "Images", ("jpg", "jpeg", "png", "gif", "bmp", "webp", "tif", "tiff", "svg", "ico", "psd")),
    ("video", "Video", ("mp4", "mkv", "mov", "avi", "wmv", "webm", "m4v")),
    ("audio", "Audio", ("mp3", "wav", "flac", "aac", "m4a", "ogg")),
    ("archives", "Archives", ("zip", "rar", "7z", "tar", "gz", "tgz", "bz2", "iso")),
    (
        "code",
        "Code",
        (
            "py", "js", "ts", "html", "htm", "css", "c", "cpp", "h", "hpp", "cs", "java", "sh", "bat",
            "ps1", "json", "yaml", "yml", "xml",
        ),
    ),
    ("executables", "Executables", ("exe", "msi", "deb", "rpm", "app", "apk", "jar")),
    ("data", "Data", ("db", "sqlite", "sql", "parquet")),
)


class SortRootBaseModel(BaseModel):
    """Shared configuration for SortRoot Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class CategoryRule(SortRootBaseModel):
    """Maps a set of file extensions onto a target subfolder of the root.

    Attributes:
        id: Stable identifier for the category.
        name: Human-readable category name.
        target_subfolder: Top-level folder under the root receiving matched files.
        extensions: Extensions (with or without a leading dot) routed to this category.
    """

    id: str
    name: str
    target_subfolder: str
    extensions: List[str] = Field(default_factory=list)


class MiscRule(SortRootBaseModel):
    """Fallback bucket for unknown or extension-less files."""

    name: str = "Misc"
    target_subfolder: str = "Misc"


class CleanupSettings(SortRootBaseModel):
    """Empty-folder cleanup behavior.

    Attributes:
        enabled: Whether cleanup runs after each pipeline execution.
        min_age_seconds: Kept in the policy schema; cleanup does not gate on directory age.
        mode: Removal strategy; directories are only ever sent to the trash.
    """

    enabled: bool = True
    min_age_seconds: int = Field(default=60, ge=0)
    mode: Literal["trash"] = "trash"


def _default_root() -> str:
    return str(Path.home() / "Sort")


def default_categories() -> list[CategoryRule]:
    """Return the built-in category set."""
    return [
        CategoryRule(id=identifier, name=name, target_subfolder=name, extensions=list(extensions))
        for identifier, name, extensions in _DEFAULT_CATEGORY_TABLE
    ]


class Policy(SortRootBaseModel):
    """Classification, collision, and cleanup policy for one root.

    Attributes:
        root: Absolute path of the directory tree being organized.
        case_insensitive_ext: Whether extension matching ignores case.
        collision_policy: Strategy applied when a destination name is taken.
        unknown_goes_to_misc: Route unmatched extensions to the misc bucket.
        no_extension_goes_to_misc: Route extension-less files to the misc bucket.
        min_file_age_seconds: Files modified more recently than this are skipped.
        cleanup: Empty-folder cleanup settings.
        categories: Ordered category rules; the first match wins.
        misc: Fallback bucket definition.
    """

    root: str = Field(default_factory=_default_root)
    case_insensitive_ext: bool = True
    collision_policy: Literal["rename"] = "rename"
    unknown_goes_to_misc: bool = True
    no_extension_goes_to_misc: bool = True
    min_file_age_seconds: int = Field(default=10, ge=0)
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)
    categories: List[CategoryRule] = Field(default_factory=default_categories)
    misc: MiscRule = Field(default_factory=MiscRule)

    @field_validator("root")
    @classmethod
    def _expand_root(cls, value: str) -> str:
        """Expand ``~`` and require an absolute root."""
        stripped = value.strip()
        if not stripped:
            raise ValueError("root cannot be empty")
        expanded = Path(stripped).expanduser()
        if not expanded.is_absolute():
            raise ValueError(f"root must be an absolute path: {value}")
        return str(expanded)

    @property
    def root_path(self) -> Path:
        """Return the root as a path object."""
        return Path(self.root)


class WatchSettings(SortRootBaseModel):
    """Watcher timing configuration.

    Attributes:
        debounce_seconds: Quiet interval that must elapse before a run fires.
        poll_interval_seconds: Event-queue poll timeout for the watch loop.
        startup_timeout_seconds: Maximum wait for the observer to attach.
        undo_settle_seconds: Delay after undo before the watcher restarts.
    """

    debounce_seconds: float = Field(default=2.0, gt=0)
    poll_interval_seconds: float = Field(default=0.2, gt=0)
    startup_timeout_seconds: float = Field(default=5.0, gt=0)
    undo_settle_seconds: float = Field(default=1.5, ge=0)


class UndoSettings(SortRootBaseModel):
    """Undo placement strategy.

    Attributes:
        restore_mode: ``quarantine`` restores under ``<root>/Restored/<session>``;
            ``in_place`` restores to the original location.
    """

    restore_mode: Literal["quarantine", "in_place"] = "quarantine"


class LoggingSettings(SortRootBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(SortRootBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class SortRootConfig(SortRootBaseModel):
    """Top-level configuration struct for SortRoot.

    Attributes:
        policy: Organization policy.
        watch: Watcher timing settings.
        undo: Undo placement settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    policy: Policy = Field(default_factory=Policy)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    undo: UndoSettings = Field(default_factory=UndoSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "SortRootBaseModel",
    "CategoryRule",
    "MiscRule",
    "CleanupSettings",
    "Policy",
    "WatchSettings",
    "UndoSettings",
    "LoggingSettings",
    "CLIOptions",
    "SortRootConfig",
    "default_categories",
]
