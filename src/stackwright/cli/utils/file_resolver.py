"""File path resolution utilities for CLI."""

from pathlib import Path
from typing import Iterable, List

DEFAULT_SPEC_NAMES = ("stackwright.yaml", "stackwright.yml", "stackwright.json")


def resolve_file_path(file_path: str) -> Path:
    """
    Resolve a user-provided file path against the current directory.

    Args:
        file_path: User-provided file path or name

    Returns:
        Resolved Path object

    Raises:
        FileNotFoundError: If the file does not exist or is not a file
    """
    path = Path(file_path)
    resolved_path = path.resolve() if path.is_absolute() else (Path.cwd() / path).resolve()

    if not resolved_path.exists():
        raise FileNotFoundError(
            f"File not found: {file_path}. Please check the file path and try again."
        )

    if not resolved_path.is_file():
        raise FileNotFoundError(
            f"Path is not a file: {file_path}. Please provide a valid file path."
        )

    return resolved_path


def resolve_spec_paths(spec_files: Iterable[str]) -> List[Path]:
    """
    Resolve desired-state files, defaulting to stackwright.yaml in the current directory.

    Raises:
        FileNotFoundError: If a given file is missing, or none was given and no default exists
    """
    spec_files = list(spec_files)
    if spec_files:
        return [resolve_file_path(name) for name in spec_files]

    for name in DEFAULT_SPEC_NAMES:
        candidate = Path.cwd() / name
        if candidate.is_file():
            return [candidate.resolve()]

    raise FileNotFoundError(
        f"No desired-state file given and none of {', '.join(DEFAULT_SPEC_NAMES)} found in the current directory."
    )
