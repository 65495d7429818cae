"""Policy helpers: extension lookup, protected folders, and validation."""

from __future__ import annotations

from pathlib import Path
from typing import List

from pydantic import BaseModel, Field

from .exceptions import ConfigError
from .models import Policy

RESTORED_DIRNAME = "Restored"


class ValidationResult(BaseModel):
    """Outcome of validating a policy.

    Attributes:
        valid: True when no blocking errors were found.
        errors: Problems that make the policy unusable.
        warnings: Non-blocking issues such as duplicate extensions.
    """

    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


def normalize_extension(ext: str, case_insensitive: bool) -> str:
    """Strip whitespace and leading dots, lowercasing when requested."""
    value = ext.strip().lstrip(".")
    return value.lower() if case_insensitive else value


def extension_lookup(policy: Policy) -> dict[str, str]:
    """Map normalized extensions to target subfolders; first category wins."""
    lookup: dict[str, str] = {}
    for category in policy.categories:
        for ext in category.extensions:
            key = normalize_extension(ext, policy.case_insensitive_ext)
            if not key:
                continue
            lookup.setdefault(key, category.target_subfolder)
    return lookup


def protected_folders(policy: Policy) -> set[str]:
    """Return every category target subfolder plus the misc subfolder."""
    folders = {category.target_subfolder for category in policy.categories}
    folders.add(policy.misc.target_subfolder)
    return folders


def reserved_folders(policy: Policy) -> set[str]:
    """Return protected folders plus the undo quarantine folder."""
    return protected_folders(policy) | {RESTORED_DIRNAME}


def _is_single_segment(value: str) -> bool:
    stripped = value.strip()
    return bool(stripped) and stripped not in {".", ".."} and "/" not in stripped and "\\" not in stripped


def validate_policy(policy: Policy) -> ValidationResult:
    """Check a policy for blocking errors and duplicate-extension warnings."""
    errors: list[str] = []
    warnings: list[str] = []

    if not policy.root.strip():
        errors.append("root cannot be empty")
    elif not Path(policy.root).is_absolute():
        errors.append(f"root must be an absolute path: {policy.root}")

    if not policy.categories:
        errors.append("at least one category is required")

    seen: dict[str, str] = {}
    for category in policy.categories:
        if not category.target_subfolder.strip():
            errors.append(f"category '{category.name}' has empty target_subfolder")
        elif not _is_single_segment(category.target_subfolder):
            errors.append(
                f"category '{category.name}' target_subfolder must be a single folder name"
            )

        for ext in category.extensions:
            key = normalize_extension(ext, policy.case_insensitive_ext)
            if not key:
                warnings.append(f"category '{category.name}' includes empty extension")
                continue
            previous = seen.setdefault(key, category.name)
            if previous != category.name:
                warnings.append(
                    f"extension '{key}' is defined in both '{previous}' and '{category.name}'; "
                    "first match wins"
                )

    if not _is_single_segment(policy.misc.target_subfolder):
        errors.append("misc target_subfolder must be a single folder name")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def require_valid(policy: Policy) -> ValidationResult:
    """Validate a policy and raise ConfigError when it has blocking errors."""
    result = validate_policy(policy)
    if not result.valid:
        raise ConfigError("; ".join(result.errors))
    return result


def default_policy(root: Path | str | None = None) -> Policy:
    """Return the built-in policy, optionally anchored at ``root`` instead of ``~/Sort``."""
    if root is None:
        return Policy()
    return Policy(root=str(root))


def ensure_root_dirs(policy: Policy) -> None:
    """Create the root and every protected top-level folder.

    Raises:
        ConfigError: If the directories cannot be created.
    """
    root = policy.root_path
    try:
        root.mkdir(parents=True, exist_ok=True)
        for folder in sorted(protected_folders(policy)):
            (root / folder).mkdir(exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"Cannot create root directories under {root}: {exc}") from exc


__all__ = [
    "RESTORED_DIRNAME",
    "ValidationResult",
    "default_policy",
    "normalize_extension",
    "extension_lookup",
    "protected_folders",
    "reserved_folders",
    "validate_policy",
    "require_valid",
    "ensure_root_dirs",
]
