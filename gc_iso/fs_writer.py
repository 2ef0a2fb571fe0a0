"""Export a virtual tree to the host filesystem.

Host layout produced under the target directory:

    cert.bin, h3.bin, ticket.bin, tmd.bin   from &&rootdata (if present)
    sys/bi2.bin, sys/apploader.img,
    sys/main.dol, sys/boot.bin, sys/fst.bin  from &&systemdata
    disc/header.bin, disc/region.bin         from &&discdata (if present)
    files/...                                every other top-level entry

Reserved entries and mirrored names are all checked before anything is
written, so a missing entry or a bad name aborts the export without touching
the host.
"""

import os
from typing import List, Tuple

from . import constants
from .constants import EXPORT_LAYOUT, FILES_DIR, SYSTEM_DATA_DIR
from .errors import IoFailure, MissingSpecialEntry
from .virtual_fs import Directory, File, Node


def log(msg):
    if constants.VERBOSE:
        print(f"[FsWriter] {msg}", flush=True)


def _find_layout_file(directory: Directory, virtual_name: str):
    if virtual_name.startswith('*'):
        return directory.find_file_with_suffix(virtual_name[1:])
    return directory.find_file(virtual_name)


class FileSystemExporter:
    """Writes reserved entries to canonical host files and mirrors the rest."""

    def __init__(self, path):
        """
        Args:
            path: Host directory to export into (created if missing)
        """
        self.path = os.fspath(path)

    def export(self, root: Directory):
        """
        Export root under self.path.

        Raises:
            MissingSpecialEntry: A required reserved directory or file is absent
            ValueError: A mirrored name is not a single host path component
            IoFailure: A host directory or file could not be created or written
        """
        plan = self.resolve(root)
        sys_dir = root.find_directory(SYSTEM_DATA_DIR)
        for node in root.iter_except(sys_dir):
            check_host_names(node)

        make_dirs(self.path)
        for host_path, file in plan:
            make_dirs(os.path.dirname(host_path))
            write_host_file(host_path, file.data)

        files_path = os.path.join(self.path, FILES_DIR)
        make_dirs(files_path)
        for node in root.iter_except(sys_dir):
            write_files_recursive(node, files_path)

        log(f"Exported {len(plan)} system files to {self.path}")

    def resolve(self, root: Directory) -> List[Tuple[str, File]]:
        """Map every reserved entry present in root to its host path."""
        plan = []
        for dir_name, host_subdir, dir_required, files in EXPORT_LAYOUT:
            directory = root.find_directory(dir_name)
            if directory is None:
                if dir_required:
                    raise MissingSpecialEntry(root.name, dir_name)
                log(f"No {dir_name} folder, skipping")
                continue

            dir_path = self.path
            if host_subdir is not None:
                dir_path = os.path.join(self.path, host_subdir)

            for virtual_name, host_name, file_required in files:
                file = _find_layout_file(directory, virtual_name)
                if file is None:
                    if file_required:
                        raise MissingSpecialEntry(dir_name, virtual_name)
                    continue
                plan.append((os.path.join(dir_path, host_name), file))
        return plan


def check_host_names(node: Node):
    """Reject names that would not stay inside their parent directory."""
    name = node.name
    if (name in ('', '.', '..') or '/' in name or os.sep in name
            or (os.altsep and os.altsep in name) or '\x00' in name):
        raise ValueError(f"Invalid host file name: {name!r}")
    if isinstance(node, Directory):
        for child in node.children:
            check_host_names(child)


def make_dirs(path: str):
    """Create path and its parents. Existing directories are fine."""
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise IoFailure(path, "create directory") from e


def write_host_file(path: str, data: bytes):
    try:
        f = open(path, 'wb')
    except OSError as e:
        raise IoFailure(path, "open file") from e
    with f:
        try:
            f.write(data)
        except OSError as e:
            raise IoFailure(path, "write to file") from e
    log(f"  {path} ({len(data)} bytes)")


def write_files_recursive(node: Node, parent_path: str):
    """Mirror node under parent_path, keeping names exactly."""
    path = os.path.join(parent_path, node.name)
    if isinstance(node, Directory):
        make_dirs(path)
        for child in node.children:
            write_files_recursive(child, path)
    else:
        write_host_file(path, node.data)


def write_fs(path, root: Directory):
    """Export root to the host directory path."""
    FileSystemExporter(path).export(root)
