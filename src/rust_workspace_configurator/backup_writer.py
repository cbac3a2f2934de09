# =============================================================================
# Descriptor Writing with Backup Rotation
# =============================================================================
"""
Non-destructive write of the generated descriptor.

An existing file at the destination is renamed to ``<name>.backup``, or
``<name>.backup.N`` with the lowest free N >= 1, before the new content is
written. Existing backups are never touched.

The rename and the write are two steps. A crash between them leaves the
backup in place and no descriptor at the destination; nothing is lost.
"""

import errno
import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from .errors import Error, ErrorReport, ErrorType, Result

DEFAULT_BACKUP_SUFFIX = ".backup"


@dataclass(frozen=True)
class WriteOutcome:
    path: Path
    backup_path: Path | None = None
    malformed_backup: bool = False


def next_backup_path(destination: Path, suffix: str = DEFAULT_BACKUP_SUFFIX) -> Path:
    """
    First unused backup name for ``destination``.

    Args:
        destination: File about to be replaced
        suffix: Backup suffix appended to the file name

    Returns:
        ``<name><suffix>`` if free, else ``<name><suffix>.1``, ``.2``, ...
    """
    base = destination.with_name(destination.name + suffix)
    if not base.exists():
        return base

    counter = 1
    while True:
        candidate = destination.with_name(f"{base.name}.{counter}")
        if not candidate.exists():
            return candidate
        counter += 1


def is_valid_descriptor(path: Path) -> bool:
    """Whether ``path`` holds a JSON object with a ``folders`` list."""
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return False
    return isinstance(document, dict) and isinstance(document.get("folders", []), list)


def atomic_write_file(path: Path, content: str) -> None:
    """
    Write ``content`` to a sibling temp file, fsync it, then ``os.replace``
    it over ``path``. Readers see either no file or the complete document.

    Raises:
        OSError: the temp file is removed first; a full disk is re-raised
            with a readable message
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    temp_path = Path(temp_name)

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        if e.errno == errno.ENOSPC:
            raise OSError(f"Disk full - cannot write to {path}") from e
        raise

    logger.debug("Atomic file write successful", operation="atomic_write_file", path=str(path))


def write_with_backup(
    destination: Path,
    content: str,
    report: ErrorReport,
    suffix: str = DEFAULT_BACKUP_SUFFIX
) -> Result[WriteOutcome]:
    """
    Preserve any existing file at ``destination``, then write ``content``.

    A destination that is not a valid descriptor is still backed up the same
    way; a MALFORMED_EXISTING_DESCRIPTOR warning goes into ``report``.

    Args:
        destination: Descriptor path
        content: Serialized descriptor
        report: Receives the malformed-file warning
        suffix: Backup suffix

    Returns:
        Result[WriteOutcome]: Err with IO_ERROR if the backup rename or the
        write fails
    """
    destination = Path(destination)
    backup_path = None
    malformed = False

    if destination.exists():
        malformed = not is_valid_descriptor(destination)
        if malformed:
            report.add_warning(Error(
                error_type=ErrorType.MALFORMED_EXISTING_DESCRIPTOR,
                message=f"Existing {destination.name} is not a valid workspace file; backing it up and writing a fresh one",
                context={"path": str(destination)}
            ))

        backup_path = next_backup_path(destination, suffix)
        try:
            os.rename(destination, backup_path)
        except OSError as e:
            return Result.err(Error(
                error_type=ErrorType.IO_ERROR,
                message=f"Cannot back up {destination} to {backup_path}: {e}",
                context={"path": str(destination), "backup_path": str(backup_path)},
                original_exception=e
            ))

        logger.info(
            "Backed up existing workspace file",
            operation="write_with_backup",
            status="backed_up",
            path=str(destination),
            backup_path=str(backup_path),
            malformed=malformed
        )

    try:
        atomic_write_file(destination, content)
    except OSError as e:
        return Result.err(Error(
            error_type=ErrorType.IO_ERROR,
            message=f"Cannot write {destination}: {e}",
            context={"path": str(destination), "backup_path": str(backup_path) if backup_path else None},
            original_exception=e
        ))

    logger.info(
        "Workspace file written",
        operation="write_with_backup",
        status="success",
        path=str(destination),
        metrics={"bytes": len(content.encode("utf-8"))}
    )

    return Result.ok(WriteOutcome(
        path=destination,
        backup_path=backup_path,
        malformed_backup=malformed
    ))
