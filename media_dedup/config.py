"""
Configuration constants for the media deduplicator.
"""

# --- File Type Definitions ---
VIDEO_EXTS = {'.mp4', '.flv', '.mkv', '.avi', '.mov', '.wmv', '.webm', '.m4v', '.mpg', '.mpeg', '.ts'}
IMAGE_EXTS = {'.jpg', '.jpeg', '.jpe', '.gif', '.png', '.heic', '.tif', '.tiff'}

# Only these extensions are considered for deduplication (compared lower-cased)
MEDIA_EXTS = VIDEO_EXTS | IMAGE_EXTS

# --- Hashing & Performance ---
HASH_CHUNK_SIZE = 1024 * 1024  # 1 MB chunks for streaming digests
DEFAULT_WORKERS = 3            # HDD-friendly default for parallel hashing

# --- Checksum Cache ---
CACHE_FILENAME = "checksum_cache.db"
CACHE_FLUSH_EVERY = 500  # queued stores before an incremental commit

# --- Output ---
SCRIPT_NAME = "potentially-destructive-remove.sh"
LOG_FILENAME = "media_dedup.log"
BACKUP_DIR_PREFIX = "dedup-backup"

# --- Filename Normalization ---
# Numeric suffixes recognized directly before the extension.
# Order matters: the parenthesised forms are tried before the bare separators.
SUFFIX_PATTERNS = [
    r' \((\d+)\)$',   # "photo (1).jpg"
    r'\((\d+)\)$',    # "photo(1).jpg"
    r'-(\d+)$',       # "photo-3.jpg"
    r'_(\d+)$',       # "photo_2.jpg"
]
