"""In-memory virtual file tree consumed by the image and host writers.

The tree is built elsewhere (from a host directory or a parsed disc image);
this module only defines the node types and child lookups the writers need.

Key concepts:
- File: a named byte payload
- Directory: a named, ordered list of child nodes
- Children order is the order nodes appear in the FST
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass
class File:
    """A file node and its payload."""
    name: str
    data: bytes = b''

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class Directory:
    """A directory node. Children are kept in traversal order."""
    name: str
    children: List['Node'] = field(default_factory=list)

    def find_file(self, name: str) -> Optional[File]:
        """Return the first child file called name, or None."""
        for child in self.children:
            if isinstance(child, File) and child.name == name:
                return child
        return None

    def find_directory(self, name: str) -> Optional['Directory']:
        """Return the first child directory called name, or None."""
        for child in self.children:
            if isinstance(child, Directory) and child.name == name:
                return child
        return None

    def find_file_with_suffix(self, suffix: str) -> Optional[File]:
        """Return the first child file whose name ends with suffix, or None."""
        for child in self.children:
            if isinstance(child, File) and child.name.endswith(suffix):
                return child
        return None

    def iter_except(self, excluded: Optional['Node']):
        """Yield children in order, skipping the excluded node (by identity)."""
        for child in self.children:
            if child is not excluded:
                yield child


Node = Union[File, Directory]
