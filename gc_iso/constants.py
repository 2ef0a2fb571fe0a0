"""GameCube disc image layout constants."""

# Print region placement and exported files
VERBOSE = False

# Size of one flattened FST entry
FST_ENTRY_SIZE = 12

# Region alignments (bytes)
DOL_ALIGNMENT = 0x100
FST_ALIGNMENT = 0x100
FILE_ALIGNMENT = 32

# Header fields patched after layout (big-endian u32 each)
OFFSET_DOL_OFFSET = 0x420
OFFSET_FST_OFFSET = 0x424
OFFSET_FST_SIZE = 0x428
OFFSET_FST_MAX_SIZE = 0x42C
HEADER_PATCH_END = OFFSET_FST_MAX_SIZE + 4

# Largest name offset an FST entry can carry (24 bits)
MAX_NAME_OFFSET = 0xFFFFFF

NAME_ENCODING = 'utf-8'

# Reserved top-level directories of the virtual tree
ROOT_DATA_DIR = '&&rootdata'
SYSTEM_DATA_DIR = '&&systemdata'
DISC_DATA_DIR = '&&discdata'

# Files inside &&systemdata
HEADER_FILE = 'iso.hdr'
APPLOADER_FILE = 'AppLoader.ldr'
DOL_SUFFIX = '.dol'
FST_FILE = 'fst.bin'
TOC_FILE = 'Game.toc'

# Host subdirectory receiving the user file tree
FILES_DIR = 'files'

# Export layout: virtual dir -> (host subdir or None, required,
# [(virtual name, host name, required)]). A virtual name starting with '*'
# matches the first file with that suffix.
EXPORT_LAYOUT = [
    (ROOT_DATA_DIR, None, False, [
        ('cert.bin', 'cert.bin', True),
        ('h3.bin', 'h3.bin', True),
        ('ticket.bin', 'ticket.bin', True),
        ('tmd.bin', 'tmd.bin', True),
    ]),
    (SYSTEM_DATA_DIR, 'sys', True, [
        (HEADER_FILE, 'bi2.bin', True),
        (APPLOADER_FILE, 'apploader.img', True),
        ('*' + DOL_SUFFIX, 'main.dol', True),
        (TOC_FILE, 'boot.bin', False),
        (FST_FILE, 'fst.bin', False),
    ]),
    (DISC_DATA_DIR, 'disc', False, [
        ('header.bin', 'header.bin', True),
        ('region.bin', 'region.bin', True),
    ]),
]
