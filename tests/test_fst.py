"""Test FST sizing, building and decoding."""

import io
import os
import struct
import sys

import pytest

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gc_iso.constants import FST_ENTRY_SIZE
from gc_iso.fst import (
    FstBuilder, FstEntry, FstNodeType, align_up, calculate_fst_len, fst_length,
    parse_fst, read_name,
)
from gc_iso.virtual_fs import Directory, File


def sample_nodes():
    return [
        Directory('dir', [
            File('x.bin', b'\x01' * 40),
            Directory('empty', []),
        ]),
        File('z', b''),
    ]


def validate_fst(entries, name_bank: bytes, names):
    """Check root closure, parent chains and name bank indexing."""
    assert entries[0].is_directory
    assert entries[0].size_or_next == len(entries)

    for index, entry in enumerate(entries):
        if not entry.is_directory:
            continue
        assert index < entry.size_or_next <= len(entries)

        # Parent chain reaches the root
        current = index
        while current != 0:
            parent = entries[current].offset_or_parent
            assert entries[parent].is_directory
            assert parent < current
            current = parent

    offsets = [e.name_offset for e in entries[1:]]
    assert offsets == sorted(offsets)
    assert len(set(offsets)) == len(offsets)
    assert [read_name(name_bank, e.name_offset) for e in entries[1:]] == names


def test_align_up():
    assert align_up(0, 32) == 0
    assert align_up(1, 32) == 32
    assert align_up(32, 32) == 32
    assert align_up(12, 0x100) == 0x100


def test_fst_length_single_file():
    # Root slot + one entry + "a.txt\0"
    assert fst_length([File('a.txt', b'12345')]) == 30


def test_fst_length_empty_tree():
    assert fst_length([]) == FST_ENTRY_SIZE


def test_calculate_fst_len_recurses_into_directories():
    node = Directory('d', [File('ab', b'xyz'), Directory('e', [])])
    assert calculate_fst_len(0, node) == (12 + 2) + (12 + 3) + (12 + 2)


def test_fst_length_counts_encoded_bytes():
    # Two-byte UTF-8 character
    assert fst_length([File('é', b'')]) == 12 + 12 + 3


def test_size_matches_build():
    nodes = sample_nodes()
    builder = FstBuilder(io.BytesIO())
    for node in nodes:
        builder.add_node(node, 0)
    entries = builder.finish()

    table = builder.table_bytes()
    assert len(table) == fst_length(nodes)
    assert len(table) == len(entries) * FST_ENTRY_SIZE + len(builder.name_bank)


def test_builder_entries():
    out = io.BytesIO()
    builder = FstBuilder(out)
    for node in sample_nodes():
        builder.add_node(node, 0)
    entries = builder.finish()

    assert [e.kind for e in entries] == [
        FstNodeType.DIRECTORY,  # root
        FstNodeType.DIRECTORY,  # dir
        FstNodeType.FILE,       # x.bin
        FstNodeType.DIRECTORY,  # empty
        FstNodeType.FILE,       # z
    ]
    assert entries[0].size_or_next == 5

    # dir: parent root, subtree ends before z
    assert entries[1].offset_or_parent == 0
    assert entries[1].size_or_next == 4

    # empty: parent dir, no descendants
    assert entries[3].offset_or_parent == 1
    assert entries[3].size_or_next == 4

    assert entries[2].offset_or_parent == 0
    assert entries[2].size_or_next == 40
    # x.bin padded to 64, z is zero-length
    assert entries[4].offset_or_parent == 64
    assert entries[4].size_or_next == 0
    assert out.tell() == 64

    assert bytes(builder.name_bank) == b'dir\x00x.bin\x00empty\x00z\x00'
    validate_fst(entries, bytes(builder.name_bank), ['dir', 'x.bin', 'empty', 'z'])


def test_add_node_returns_entry_count():
    builder = FstBuilder(io.BytesIO())
    assert builder.add_node(Directory('d', [File('a', b'1'), File('b', b'2')]), 0) == 4
    assert builder.add_node(File('c', b'3'), 0) == 5


def test_payloads_aligned_and_padded():
    out = io.BytesIO()
    out.write(b'\xff' * 7)
    builder = FstBuilder(out)
    builder.add_node(File('a', b'hello'), 0)
    builder.add_node(File('b', b'\x02' * 32), 0)
    entries = builder.finish()

    data = out.getvalue()
    assert entries[1].offset_or_parent == 32
    assert data[7:32] == bytes(25)
    assert data[32:37] == b'hello'
    assert data[37:64] == bytes(27)
    # Already aligned: no trailing pad
    assert entries[2].offset_or_parent == 64
    assert len(data) == 96

    for entry in entries[1:]:
        assert entry.offset_or_parent % 32 == 0


def test_custom_alignment():
    out = io.BytesIO(b'\x00' * 3)
    out.seek(3)
    builder = FstBuilder(out, alignment=4)
    builder.add_node(File('a', b'abc'), 0)
    assert builder.entries[1].offset_or_parent == 4
    assert out.tell() == 8


def test_entry_pack_layout():
    entry = FstEntry(kind=FstNodeType.FILE, name_offset=0x1234,
                     offset_or_parent=0x220, size_or_next=5)
    packed = entry.pack()
    assert len(packed) == FST_ENTRY_SIZE
    assert packed[0] == 0
    assert packed[1] == 0
    assert struct.unpack('>H', packed[2:4])[0] == 0x1234
    assert struct.unpack('>ii', packed[4:12]) == (0x220, 5)

    directory = FstEntry(kind=FstNodeType.DIRECTORY, size_or_next=2).pack()
    assert directory == b'\x01\x00\x00\x00' + b'\x00\x00\x00\x00' + b'\x00\x00\x00\x02'


def test_entry_unpack():
    data = b'\xaa' + FstEntry(FstNodeType.DIRECTORY, 6, 1, 9).pack()
    entry = FstEntry.unpack(data, 1)
    assert entry == FstEntry(FstNodeType.DIRECTORY, 6, 1, 9)


def test_entry_name_offset_out_of_range():
    with pytest.raises(ValueError):
        FstEntry(name_offset=1 << 24).pack()


def test_parse_fst():
    builder = FstBuilder(io.BytesIO())
    for node in sample_nodes():
        builder.add_node(node, 0)
    builder.finish()

    parsed = parse_fst(builder.table_bytes())
    assert [name for _, name in parsed] == ['', 'dir', 'x.bin', 'empty', 'z']
    assert [entry for entry, _ in parsed] == builder.entries


def test_parse_fst_rejects_file_root():
    with pytest.raises(ValueError):
        parse_fst(FstEntry(FstNodeType.FILE, 0, 0, 1).pack())


def test_parse_fst_rejects_truncated_table():
    with pytest.raises(ValueError):
        parse_fst(FstEntry(FstNodeType.DIRECTORY, 0, 0, 3).pack())
