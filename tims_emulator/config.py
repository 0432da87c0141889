"""
TIMS Machine Configuration
==========================

Fixed machine geometry and default store file names. The store files are
created in the current working directory unless a path is given.
"""

# =============================================================================
#  MEMORY GEOMETRY
# =============================================================================
NUM_MEM_WORDS = 100          # words 0-99
WORD_BYTES = 2               # signed 16-bit
WORD_FORMAT = '<h'           # on-disk layout, little-endian
MEMORY_BYTES = NUM_MEM_WORDS * WORD_BYTES


# =============================================================================
#  TERMINAL I/O
# =============================================================================
STRING_BUFFER_SIZE = 150     # max bytes moved by one RDS / PRTS


# =============================================================================
#  STORE FILES
# =============================================================================
MEMORY_FILE = "memory.dat"              # raw words, source of truth
FORMATTED_MEMORY_FILE = "memory_f.dat"  # human-readable mirror, write-only
MIRROR_COLUMNS = 10
