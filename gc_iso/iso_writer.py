"""GameCube disc image writer.

Lays a virtual tree out as a single-partition, unencrypted disc image:

    0x0000      iso.hdr, verbatim
    ...         AppLoader.ldr, verbatim
    DOL offset  the *.dol executable (aligned to DOL_ALIGNMENT)
    FST offset  FST entries + name bank (aligned to FST_ALIGNMENT)
    ...         file payloads, each on a FILE_ALIGNMENT boundary

The FST region is reserved with zeros before the payloads are streamed, then
filled in once every payload offset is known. The header's DOL/FST fields are
patched last.
"""

import io
import struct
from dataclasses import dataclass

from . import constants
from .constants import (
    DOL_ALIGNMENT, FST_ALIGNMENT, FILE_ALIGNMENT,
    OFFSET_DOL_OFFSET, OFFSET_FST_OFFSET, OFFSET_FST_SIZE, OFFSET_FST_MAX_SIZE,
    HEADER_PATCH_END,
    SYSTEM_DATA_DIR, HEADER_FILE, APPLOADER_FILE, DOL_SUFFIX,
)
from .errors import IoFailure, MissingSpecialEntry
from .fst import FstBuilder, align_up, fst_length
from .virtual_fs import Directory, File


def log(msg):
    if constants.VERBOSE:
        print(f"[IsoWriter] {msg}", flush=True)


@dataclass
class IsoLayout:
    """Where write() placed each region."""
    dol_offset: int
    fst_offset: int
    fst_length: int
    entry_count: int
    data_end: int


class ImageSink:
    """Seekable byte sink that reports failures as IoFailure."""

    def __init__(self, stream):
        self.stream = stream
        self.name = str(getattr(stream, 'name', '<stream>'))

    def write(self, data: bytes):
        """Write all of data, retrying short writes."""
        view = memoryview(data)
        while view:
            try:
                written = self.stream.write(view)
            except OSError as e:
                raise IoFailure(self.name, "write to") from e
            # Streams that don't report a count wrote everything
            if written is None:
                written = len(view)
            if written == 0:
                raise IoFailure(self.name, "write to")
            view = view[written:]

    def tell(self) -> int:
        try:
            return self.stream.tell()
        except OSError as e:
            raise IoFailure(self.name, "tell position in") from e

    def seek(self, offset: int):
        try:
            self.stream.seek(offset, io.SEEK_SET)
        except OSError as e:
            raise IoFailure(self.name, f"seek to {offset:#x} in") from e

    def write_u32(self, value: int):
        self.write(struct.pack('>I', value))

    def pad_to(self, offset: int):
        """Zero-fill from the current position up to offset."""
        pos = self.tell()
        if offset > pos:
            self.write(bytes(offset - pos))


def _check_alignment(name: str, value: int):
    if value <= 0 or value & (value - 1):
        raise ValueError(f"{name} must be a positive power of two, got {value}")


class ImageWriter:
    """Writes a virtual tree to a seekable stream as a disc image."""

    def __init__(self, writer, dol_alignment: int = DOL_ALIGNMENT,
                 fst_alignment: int = FST_ALIGNMENT,
                 file_alignment: int = FILE_ALIGNMENT):
        """
        Initialize image writer.

        Args:
            writer: Binary stream supporting write(), tell() and seek()
            dol_alignment: Boundary the executable starts on
            fst_alignment: Boundary the FST starts on
            file_alignment: Boundary every file payload starts on
        """
        _check_alignment("dol_alignment", dol_alignment)
        _check_alignment("fst_alignment", fst_alignment)
        _check_alignment("file_alignment", file_alignment)
        self.sink = ImageSink(writer)
        self.dol_alignment = dol_alignment
        self.fst_alignment = fst_alignment
        self.file_alignment = file_alignment

    def write(self, root: Directory) -> IsoLayout:
        """
        Write the whole image for root.

        The image starts at byte 0 of the stream. All reserved entries are
        looked up before anything is written.

        Raises:
            MissingSpecialEntry: &&systemdata, iso.hdr, AppLoader.ldr or the
                executable is absent
            IoFailure: The stream failed to write, tell or seek
            ValueError: iso.hdr is too short to hold the DOL/FST fields and
                the image data reaches them
        """
        sys_dir, header, apploader, dol = find_system_files(root)
        sink = self.sink

        sink.seek(0)
        sink.write(header.data)
        sink.write(apploader.data)

        dol_offset = align_up(header.size + apploader.size, self.dol_alignment)
        sink.pad_to(dol_offset)
        sink.write(dol.data)

        fst_offset = align_up(dol_offset + dol.size, self.fst_alignment)
        sink.pad_to(fst_offset)

        fst_len = fst_length(root.iter_except(sys_dir))
        log(f"DOL at {dol_offset:#x} ({dol.size} bytes), "
            f"FST at {fst_offset:#x} ({fst_len} bytes)")

        # Reserved until every payload offset is known
        sink.write(bytes(fst_len))

        builder = FstBuilder(sink, self.file_alignment)
        for node in root.iter_except(sys_dir):
            builder.add_node(node, 0)
        entries = builder.finish()
        data_end = sink.tell()

        table = builder.table_bytes()
        if len(table) != fst_len:
            raise RuntimeError(f"FST is {len(table)} bytes, {fst_len} were reserved")

        # Patch fields past a short header would land on image data
        if header.size < HEADER_PATCH_END and data_end > OFFSET_DOL_OFFSET:
            raise ValueError(f"iso.hdr is {header.size:#x} bytes, the header fields at "
                             f"{OFFSET_DOL_OFFSET:#x}..{HEADER_PATCH_END:#x} would overwrite "
                             f"image data ending at {data_end:#x}")

        sink.seek(fst_offset)
        sink.write(table)

        sink.seek(OFFSET_DOL_OFFSET)
        sink.write_u32(dol_offset)
        sink.seek(OFFSET_FST_OFFSET)
        sink.write_u32(fst_offset)
        sink.seek(OFFSET_FST_SIZE)
        sink.write_u32(fst_len)
        sink.seek(OFFSET_FST_MAX_SIZE)
        sink.write_u32(fst_len)

        log(f"Wrote {len(entries)} FST entries, data ends at {data_end:#x}")
        return IsoLayout(dol_offset=dol_offset,
                         fst_offset=fst_offset,
                         fst_length=fst_len,
                         entry_count=len(entries),
                         data_end=data_end)


def find_system_files(root: Directory):
    """
    Locate &&systemdata and the header, apploader and executable inside it.

    Returns:
        Tuple of (system directory, header, apploader, dol)
    """
    sys_dir = root.find_directory(SYSTEM_DATA_DIR)
    if sys_dir is None:
        raise MissingSpecialEntry(root.name, SYSTEM_DATA_DIR)

    header = _require_file(sys_dir, sys_dir.find_file(HEADER_FILE), HEADER_FILE)
    apploader = _require_file(sys_dir, sys_dir.find_file(APPLOADER_FILE), APPLOADER_FILE)
    dol = _require_file(sys_dir, sys_dir.find_file_with_suffix(DOL_SUFFIX), '*' + DOL_SUFFIX)
    return sys_dir, header, apploader, dol


def _require_file(container: Directory, file: File, expected_name: str) -> File:
    if file is None:
        raise MissingSpecialEntry(container.name, expected_name)
    return file


def write_iso(writer, root: Directory, **kwargs) -> IsoLayout:
    """Write root to writer as a disc image. See ImageWriter for kwargs."""
    return ImageWriter(writer, **kwargs).write(root)
