# gc_iso
# Lays a virtual file tree out as a GameCube disc image, and exports it to a host directory

from .virtual_fs import File, Directory
from .fst import FstEntry, FstNodeType, FstBuilder, fst_length, parse_fst
from .iso_writer import ImageWriter, IsoLayout, write_iso
from .fs_writer import FileSystemExporter, write_fs
from .errors import GcIsoError, MissingSpecialEntry, IoFailure

__all__ = ['File', 'Directory', 'FstEntry', 'FstNodeType', 'FstBuilder', 'fst_length',
           'parse_fst', 'ImageWriter', 'IsoLayout', 'write_iso', 'FileSystemExporter',
           'write_fs', 'GcIsoError', 'MissingSpecialEntry', 'IoFailure']
