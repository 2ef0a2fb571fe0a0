"""File String Table (FST) sizing, building and decoding.

The FST flattens the directory tree in pre-order into fixed 12-byte entries,
followed by a name bank of NUL-terminated names:

    offset  size  field
    0x00    1     kind (0 = file, 1 = directory)
    0x01    3     name offset into the name bank
    0x04    4     file: payload offset in the image / dir: parent entry index
    0x08    4     file: payload length / dir: index one past its last descendant

Entry 0 is the root directory; its last field is the total entry count.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List, Tuple

from . import constants
from .constants import FST_ENTRY_SIZE, FILE_ALIGNMENT, MAX_NAME_OFFSET, NAME_ENCODING
from .virtual_fs import Directory, File, Node

FST_ENTRY_FORMAT = '>Iii'


def log(msg):
    if constants.VERBOSE:
        print(f"[Fst] {msg}", flush=True)


def align_up(offset: int, alignment: int) -> int:
    """Round offset up to the next multiple of alignment."""
    return (offset + (alignment - 1)) // alignment * alignment


def encode_name(name: str) -> bytes:
    """Encode a node name the way it is stored in the name bank (without NUL)."""
    return name.encode(NAME_ENCODING)


class FstNodeType(IntEnum):
    FILE = 0
    DIRECTORY = 1


@dataclass
class FstEntry:
    """One flattened FST entry.

    offset_or_parent and size_or_next are read according to kind:
    a file stores its payload offset and length, a directory stores its
    parent entry index and the index one past its subtree.
    """
    kind: FstNodeType = FstNodeType.FILE
    name_offset: int = 0
    offset_or_parent: int = 0
    size_or_next: int = 0

    def pack(self) -> bytes:
        """Serialize to FST_ENTRY_SIZE big-endian bytes."""
        if not 0 <= self.name_offset <= MAX_NAME_OFFSET:
            raise ValueError(f"Name offset {self.name_offset:#x} does not fit in an FST entry")
        return struct.pack(FST_ENTRY_FORMAT,
                           (int(self.kind) << 24) | self.name_offset,
                           self.offset_or_parent,
                           self.size_or_next)

    @classmethod
    def unpack(cls, data: bytes, offset: int = 0) -> 'FstEntry':
        """Decode the entry starting at data[offset]."""
        kind_and_name, field_a, field_b = struct.unpack_from(FST_ENTRY_FORMAT, data, offset)
        return cls(kind=FstNodeType(kind_and_name >> 24),
                   name_offset=kind_and_name & MAX_NAME_OFFSET,
                   offset_or_parent=field_a,
                   size_or_next=field_b)

    @property
    def is_directory(self) -> bool:
        return self.kind == FstNodeType.DIRECTORY


def calculate_fst_len(cur_value: int, node: Node) -> int:
    """Add the bytes node (and, for a directory, its subtree) adds to the FST."""
    cur_value += FST_ENTRY_SIZE + len(encode_name(node.name)) + 1
    if isinstance(node, Directory):
        for child in node.children:
            cur_value = calculate_fst_len(cur_value, child)
    return cur_value


def fst_length(nodes: Iterable[Node]) -> int:
    """
    Compute the exact FST size for a set of top-level nodes.

    Starts from the root entry's slot, which has no name of its own
    in the bank.

    Args:
        nodes: Top-level nodes that will be placed under the FST root

    Returns:
        Size in bytes of the entry table plus name bank
    """
    total = FST_ENTRY_SIZE
    for node in nodes:
        total = calculate_fst_len(total, node)
    return total


class FstBuilder:
    """Builds FST entries while streaming file payloads into an image.

    Nodes are walked in pre-order. Each file's payload is written to the
    writer at the next FILE_ALIGNMENT boundary and followed by zero padding
    up to the next boundary; the position is recorded in its entry.
    Entries and the name bank stay in memory until table_bytes() is called.
    """

    def __init__(self, writer, alignment: int = FILE_ALIGNMENT):
        """
        Args:
            writer: Sink with write() and tell(), positioned at the end of
                the data written so far
            alignment: Boundary every file payload starts on
        """
        self.writer = writer
        self.alignment = alignment
        # Placeholder root, completed by finish()
        self.entries: List[FstEntry] = [FstEntry(kind=FstNodeType.DIRECTORY)]
        self.name_bank = bytearray()

    def add_node(self, node: Node, parent_index: int = 0) -> int:
        """Emit node and its subtree. Returns the entry count afterwards."""
        name_offset = self._add_name(node.name)

        if isinstance(node, Directory):
            this_index = len(self.entries)
            entry = FstEntry(kind=FstNodeType.DIRECTORY,
                             name_offset=name_offset,
                             offset_or_parent=parent_index)
            # Placeholder until the subtree is emitted
            self.entries.append(entry)
            for child in node.children:
                self.add_node(child, this_index)
            entry.size_or_next = len(self.entries)
        else:
            entry = FstEntry(kind=FstNodeType.FILE,
                             name_offset=name_offset,
                             offset_or_parent=self._write_payload(node),
                             size_or_next=node.size)
            self.entries.append(entry)

        return len(self.entries)

    def finish(self) -> List[FstEntry]:
        """Close the root entry over everything emitted and return all entries."""
        self.entries[0].size_or_next = len(self.entries)
        log(f"{len(self.entries)} entries, {len(self.name_bank)} byte name bank")
        return self.entries

    def table_bytes(self) -> bytes:
        """Serialize the entry table followed by the name bank."""
        table = bytearray()
        for entry in self.entries:
            table += entry.pack()
        table += self.name_bank
        return bytes(table)

    def _add_name(self, name: str) -> int:
        offset = len(self.name_bank)
        self.name_bank += encode_name(name)
        self.name_bank.append(0)
        return offset

    def _write_payload(self, file: File) -> int:
        pos = self.writer.tell()
        start = align_up(pos, self.alignment)
        if start > pos:
            self.writer.write(bytes(start - pos))

        self.writer.write(file.data)

        # Trailing pad, nothing if the payload already ends on a boundary
        padding = (self.alignment - file.size % self.alignment) % self.alignment
        if padding:
            self.writer.write(bytes(padding))

        return start


def read_name(name_bank: bytes, offset: int) -> str:
    """Read the NUL-terminated name starting at offset."""
    end = name_bank.index(b'\x00', offset)
    return name_bank[offset:end].decode(NAME_ENCODING)


def parse_fst(data: bytes) -> List[Tuple[FstEntry, str]]:
    """
    Decode an FST region back into entries and their names.

    Args:
        data: Entry table followed by the name bank, as written to the image

    Returns:
        List of (entry, name) in table order; the root's name is ''
    """
    root = FstEntry.unpack(data, 0)
    if not root.is_directory:
        raise ValueError("FST root entry is not a directory")

    count = root.size_or_next
    bank_start = count * FST_ENTRY_SIZE
    if count < 1 or bank_start > len(data):
        raise ValueError(f"FST entry count {count} does not fit in {len(data)} bytes")

    name_bank = data[bank_start:]
    result = [(root, '')]
    for i in range(1, count):
        entry = FstEntry.unpack(data, i * FST_ENTRY_SIZE)
        result.append((entry, read_name(name_bank, entry.name_offset)))
    return result
