"""
File selection and validation.

Turns a raw file-selection event into the single file that will be
processed, rejecting empty selections and unsupported image types.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..utils.config import UploadConfig
from ..utils.helpers import format_size, guess_mime_type
from ..utils.logging import get_logger
from .errors import NoFileSelected, UnsupportedFileType


@dataclass(frozen=True)
class SelectedFile:
    """A file picked by the user, as handed over by the host."""

    name: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str | None = None) -> "SelectedFile":
        """
        Read a file from disk, guessing its MIME type from the name.

        Args:
            path: Path to the file
            mime_type: Explicit MIME type (guessed when None)

        Returns:
            Selected file with its contents loaded
        """
        path = Path(path)
        return cls(
            name=path.name,
            mime_type=mime_type if mime_type is not None else guess_mime_type(path),
            data=path.read_bytes(),
        )


@dataclass(frozen=True)
class FileSelectionEvent:
    """A file-selection event carrying zero or more files."""

    files: Sequence[SelectedFile] | None = ()

    @classmethod
    def of(cls, *files: SelectedFile) -> "FileSelectionEvent":
        return cls(files=tuple(files))

    @classmethod
    def from_paths(cls, paths: Iterable[str | Path]) -> "FileSelectionEvent":
        return cls(files=tuple(SelectedFile.from_path(p) for p in paths))


class FileValidator:
    """Validates file-selection events against the accepted image types."""

    def __init__(self, config: UploadConfig | None = None):
        """
        Initialize the validator.

        Args:
            config: Upload configuration (defaults when None)
        """
        self.config = config or UploadConfig()
        self.accepted_mime_types = frozenset(
            m.strip().lower() for m in self.config.accepted_mime_types
        )
        self.logger = get_logger()

    def is_accepted(self, mime_type: str | None) -> bool:
        """Check a MIME type against the accepted set."""
        # Matching ignores case and surrounding whitespace
        return (mime_type or "").strip().lower() in self.accepted_mime_types

    def validate(self, event: FileSelectionEvent | None) -> SelectedFile:
        """
        Return the single file to process from a selection event.

        Only the first file of the selection is used.

        Args:
            event: File-selection event

        Returns:
            The first selected file

        Raises:
            NoFileSelected: If the selection is empty
            UnsupportedFileType: If the file is not an accepted image type
        """
        if event is None or not event.files:
            raise NoFileSelected()

        selected = event.files[0]
        if len(event.files) > 1:
            self.logger.debug(
                f"{len(event.files)} files selected, using only {selected.name}"
            )

        if not self.is_accepted(selected.mime_type):
            self.logger.warning(
                f"Rejected {selected.name}: unsupported type '{selected.mime_type}'"
            )
            raise UnsupportedFileType()

        self.logger.debug(
            f"Accepted {selected.name} ({selected.mime_type}, {format_size(selected.size)})"
        )
        return selected
