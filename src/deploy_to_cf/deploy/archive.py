"""Streaming tarball extraction."""

from __future__ import annotations

import os
import shutil
import tarfile
import zlib
from pathlib import Path
from typing import BinaryIO, List

import structlog

from deploy_to_cf.core.exceptions import ArchiveError

logger = structlog.get_logger()


def _member_path(dest: Path, member: tarfile.TarInfo) -> Path:
    """Resolve a member path inside dest, rejecting tar-slip entries."""
    member_path = Path(member.name)
    if member_path.is_absolute() or ".." in member_path.parts:
        raise ArchiveError(f"Archive contains unsafe path: {member.name}")
    target = dest / member_path
    base = dest.resolve()
    if not str(target.resolve()).startswith(str(base)):
        raise ArchiveError(f"Archive entry escapes destination: {member.name}")
    return target


def _write_file(tar: tarfile.TarFile, member: tarfile.TarInfo, target: Path) -> None:
    mode = member.mode & 0o7777
    target.parent.mkdir(parents=True, exist_ok=True)
    source = tar.extractfile(member)
    fd = os.open(target, os.O_CREAT | os.O_TRUNC | os.O_WRONLY, mode)
    with os.fdopen(fd, "wb") as out:
        if source is not None:
            shutil.copyfileobj(source, out)
    # os.open applies the umask; restore the archived bits
    os.chmod(target, mode)


def extract_tarball(stream: BinaryIO, dest: Path) -> List[str]:
    """Stream-decompress and unpack a .tar.gz into dest.

    The archive is read sequentially (``r|gz``), so nothing is buffered in
    memory beyond the current block. Directories are created with their
    archived mode, regular files are truncated and rewritten with theirs.
    Files written before a failing entry are left in place; dest belongs to
    the caller.

    Returns:
        Sorted top-level entry names.

    Raises:
        ArchiveError: on decompression, header or write failures.
    """
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    top_level = set()
    directories = []
    files = 0

    try:
        with tarfile.open(fileobj=stream, mode="r|gz") as tar:
            for member in tar:
                target = _member_path(dest, member)
                parts = Path(member.name).parts
                if parts:
                    top_level.add(parts[0])

                if member.isdir():
                    mode = member.mode & 0o7777
                    target.mkdir(parents=True, exist_ok=True)
                    # Owner must be able to write children until the end
                    os.chmod(target, mode | 0o700)
                    directories.append((target, mode))
                elif member.isfile():
                    _write_file(tar, member, target)
                    files += 1
                else:
                    logger.debug("Skipping archive entry", name=member.name, type=member.type)

        for target, mode in reversed(directories):
            os.chmod(target, mode)
    except ArchiveError:
        raise
    except (tarfile.TarError, zlib.error, EOFError, OSError) as e:
        logger.error("Archive extraction failed", dest=str(dest), error=str(e))
        raise ArchiveError(f"Failed to extract archive: {e}") from e

    logger.info("Archive extracted", dest=str(dest), files=files)
    return sorted(top_level)


def app_root(dest: Path, names: List[str]) -> Path:
    """Application root inside an extracted tarball.

    GitHub tarballs wrap the tree in a single `owner-repo-sha/` directory.
    """
    if len(names) == 1 and (Path(dest) / names[0]).is_dir():
        return Path(dest) / names[0]
    return Path(dest)
