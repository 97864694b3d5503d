"""On-disk writer: the only code that mutates a node home.

Every file is replaced atomically: the new content goes to a temp file in
the same directory, is fsynced, then renamed over the target, and the
directory is fsynced. A crash leaves either the old file or the new one,
never a torn one. There is no write-ahead log across files; a crash
between files shows up as drift that the doctor reports.

Dry-run never touches the disk, not even to create a directory.
The writer never deletes anything except ``addrbook.json``.
"""

from __future__ import annotations

import logging
import os
import tempfile
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from monoctl.core import toml_lines
from monoctl.core.config_patch import TARGET_FILES, ConfigPatch
from monoctl.errors import PathTraversal, WriterIOError


logger = logging.getLogger(__name__)

CONFIG_DIR = "config"
GENESIS_FILE = "genesis.json"
ADDRBOOK_FILE = "addrbook.json"
SIDECAR_FILE = "monoctl.patch"

DIR_MODE = 0o755
FILE_MODE = 0o644


def resolve_home(home: Union[str, Path]) -> Path:
    """Validate a node home path. Raises PathTraversal."""
    path = Path(home)
    if not path.is_absolute() or ".." in path.parts:
        raise PathTraversal(str(home))
    return path


def config_dir(home: Union[str, Path]) -> Path:
    return resolve_home(home) / CONFIG_DIR


def genesis_path(home: Union[str, Path]) -> Path:
    return config_dir(home) / GENESIS_FILE


def sidecar_path(home: Union[str, Path]) -> Path:
    return config_dir(home) / SIDECAR_FILE


def target_path(home: Union[str, Path], file: str) -> Path:
    return config_dir(home) / file


def write_genesis(home: Union[str, Path], data: bytes, dry_run: bool = False) -> Path:
    """Write ``<home>/config/genesis.json`` atomically. Returns the path."""
    path = genesis_path(home)
    if dry_run:
        return path
    _atomic_write(path, data)
    logger.info("wrote %s (%d bytes)", path, len(data))
    return path


def read_text(path: Path) -> str:
    """Current file content, or "" if it does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""
    except OSError as e:
        raise WriterIOError("read", str(path), e.strerror or str(e)) from e


def render_patch(
    home: Union[str, Path],
    patch: ConfigPatch,
    keys: Optional[Iterable[str]] = None,
) -> dict[str, str]:
    """Rendered content of each target file after applying ``patch``.

    Reads only. ``keys`` restricts the update to a subset of canonical
    keys (repair); by default every canonical key is written. A file whose
    result would not parse as TOML raises WriterIOError("parse").
    """
    selected = set(keys) if keys is not None else None
    rendered: dict[str, str] = {}
    for file in TARGET_FILES:
        path = target_path(home, file)
        text = read_text(path)
        for key, literal in patch.for_file(file):
            if selected is not None and key.name not in selected:
                continue
            text = toml_lines.set_value(text, key.section, key.toml_key, literal)
        try:
            toml_lines.check_parses(text)
        except ValueError as e:
            raise WriterIOError("parse", str(path), str(e)) from e
        rendered[file] = text
    return rendered


def write_patch(
    home: Union[str, Path],
    patch: ConfigPatch,
    dry_run: bool = False,
    keys: Optional[Iterable[str]] = None,
) -> tuple[Path, str]:
    """Apply ``patch`` to the three target files and record the sidecar.

    Unrelated lines (and commented duplicates of canonical keys) are left
    untouched. Files whose content would not change are not rewritten.
    Returns the sidecar path and its rendered text.
    """
    path = sidecar_path(home)
    sidecar_text = patch.render()
    rendered = render_patch(home, patch, keys)
    if dry_run:
        return path, sidecar_text

    for file, text in rendered.items():
        target = target_path(home, file)
        if target.exists() and read_text(target) == text:
            continue
        _atomic_write(target, text.encode("utf-8"))
        logger.info("updated %s", target)

    _atomic_write(path, sidecar_text.encode("utf-8"))
    return path, sidecar_text


def clear_addrbook(home: Union[str, Path], dry_run: bool = False) -> bool:
    """Remove ``<home>/config/addrbook.json`` if present.

    Returns True if the file existed (and, unless dry-run, was removed).
    """
    path = config_dir(home) / ADDRBOOK_FILE
    if not path.exists():
        return False
    if dry_run:
        return True
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise WriterIOError("remove", str(path), e.strerror or str(e)) from e
    logger.info("removed %s", path)
    return True


@dataclass(frozen=True)
class SidecarRecord:
    """Operator choices recorded by the last successful write."""
    network: str
    sync_strategy: str
    external_address: str
    canonical: dict


def read_sidecar(home: Union[str, Path]) -> Optional[SidecarRecord]:
    """Load the sidecar patch file. None if absent; ValueError if unreadable."""
    path = sidecar_path(home)
    text = read_text(path)
    if not text:
        return None
    try:
        doc = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"sidecar {path} is not valid TOML: {e}") from e
    meta = doc.get("monoctl", {})
    canonical = doc.get("canonical", {})
    return SidecarRecord(
        network=str(meta.get("network", "")),
        sync_strategy=str(meta.get("sync_strategy", "default")),
        external_address=str(canonical.get("external_address", "")),
        canonical=dict(canonical),
    )


def _atomic_write(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` via temp file + fsync + rename."""
    parent = path.parent
    try:
        parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
    except OSError as e:
        raise WriterIOError("mkdir", str(parent), e.strerror or str(e)) from e

    mode = FILE_MODE
    if path.exists():
        mode = path.stat().st_mode & 0o777

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as e:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise WriterIOError("write", str(path), e.strerror or str(e)) from e
    _fsync_dir(parent)


def _fsync_dir(directory: Path) -> None:
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return  # platforms without directory fds
    try:
        os.fsync(fd)
    except OSError as e:
        logger.debug("directory fsync unsupported for %s: %s", directory, e)
    finally:
        os.close(fd)
