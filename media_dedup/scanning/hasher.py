import hashlib
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, List, Optional

from tqdm import tqdm

from .. import config
from ..cache import ChecksumCache
from ..exceptions import FileHashError
from ..models import MediaFile, RunWarning

@dataclass
class HashStats:
    cache_hits: int = 0
    cache_misses: int = 0
    bytes_hashed: int = 0
    hashing_seconds: float = 0.0

class FileHasher:
    def __init__(self, cache: Optional[ChecksumCache] = None, chunk_size: int = config.HASH_CHUNK_SIZE):
        self.cache = cache
        self.chunk_size = chunk_size
        self.stats = HashStats()
        self._stats_lock = threading.Lock()

    def hash(self, file: MediaFile) -> str:
        """
        Returns the SHA-256 hex digest of the file.

        The cache is consulted first; a hit requires the stored size and
        mtime to match the scanned ones exactly, and skips reading content.
        On a miss the file is streamed and the new digest is stored.

        Raises FileHashError if the file cannot be read.
        """
        key = str(file.path)

        if self.cache is not None:
            cached = self.cache.lookup(key, file.size_bytes, file.modified_time)
            if cached is not None:
                with self._stats_lock:
                    self.stats.cache_hits += 1
                return cached

        t0 = time.perf_counter()
        try:
            digest, bytes_read = self._full_sha256(file.path)
        except OSError as e:
            raise FileHashError(f"Cannot read {file.path}: {e}") from e
        elapsed = time.perf_counter() - t0

        with self._stats_lock:
            self.stats.cache_misses += 1
            self.stats.bytes_hashed += bytes_read
            self.stats.hashing_seconds += elapsed

        if self.cache is not None:
            self.cache.store(key, file.size_bytes, file.modified_time, digest)
        return digest

    def hash_files(self,
                   files: Iterable[MediaFile],
                   max_workers: int = config.DEFAULT_WORKERS,
                   warnings: Optional[List[RunWarning]] = None) -> List[MediaFile]:
        """
        Hashes every file and returns copies with `digest` set.
        Files that fail are logged, recorded in `warnings` and left out.
        Result order follows completion order; callers sort downstream.
        """
        files = list(files)
        hashed: List[MediaFile] = []

        if max_workers <= 1:
            for f in tqdm(files, desc="Hashing", unit="file", disable=None):
                result = self._hash_one(f, warnings)
                if result is not None:
                    hashed.append(result)
            return hashed

        logging.info(f"Parallel hashing: {len(files)} files, {max_workers} workers")

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_file = {executor.submit(self.hash, f): f for f in files}

            # Only the main thread touches `hashed` and `warnings`
            for future in tqdm(as_completed(future_to_file), total=len(files),
                               desc="Hashing", unit="file", disable=None):
                f = future_to_file[future]
                try:
                    hashed.append(replace(f, digest=future.result()))
                except FileHashError as e:
                    self._record_failure(f, e, warnings)

        return hashed

    def _hash_one(self, file: MediaFile, warnings: Optional[List[RunWarning]]) -> Optional[MediaFile]:
        try:
            digest = self.hash(file)
        except FileHashError as e:
            self._record_failure(file, e, warnings)
            return None
        return replace(file, digest=digest)

    def _record_failure(self, file: MediaFile, error: FileHashError, warnings: Optional[List[RunWarning]]):
        logging.warning(f"Skipping unreadable file: {error}")
        if warnings is not None:
            warnings.append(RunWarning(path=file.path, stage="hash", message=str(error)))

    def _full_sha256(self, path: Path) -> tuple[str, int]:
        """Streams the whole file. Returns (hexdigest, bytes read)."""
        h = hashlib.sha256()
        total = 0
        with open(path, 'rb') as f:
            while chunk := f.read(self.chunk_size):
                h.update(chunk)
                total += len(chunk)
        return h.hexdigest(), total
