"""Profile storage backed by a local markup file."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from . import __version__
from .config import default_profiles_file
from .models import Primer, Profile, ProfileId
from .storage import ProfileNotFoundError, StorageBackend
from .xml_codec import READ_CHUNK_SIZE, ParseFailure, parse_profiles, serialize_profiles

logger = logging.getLogger(__name__)

StatSignature = tuple[int, int]


@dataclass(frozen=True)
class ImportResult:
    """Outcome of reading the profiles file."""

    path: Path
    profile_count: int
    skipped_fields: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ExportResult:
    """Outcome of rewriting the profiles file."""

    path: Path
    profile_count: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LocalXmlStore(StorageBackend):
    """In-memory ordered profile map persisted as one markup file.

    The whole file is read on construction. Mutations only touch memory;
    `flush()` rewrites the file from scratch and `close()` does so when
    there are unsaved changes. A file that is missing, unreadable or
    malformed yields an empty collection; the reason is kept in
    `last_import`.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        """Load all profiles from `path` (default: the configured user file)."""
        super().__init__()
        self.path = Path(path) if path is not None else self.default_file()
        self._profiles: dict[ProfileId, Profile] = {}
        self._order: list[ProfileId] = []
        self._signature: StatSignature | None = None
        self._dirty = False
        self._closed = False
        self.last_export: ExportResult | None = None
        self.last_import = self._import()

    @staticmethod
    def default_file() -> Path:
        """Return the default profiles file location."""
        return default_profiles_file()

    @property
    def dirty(self) -> bool:
        """Whether memory holds changes not yet written to the file."""
        return self._dirty

    @property
    def order(self) -> tuple[ProfileId, ...]:
        """Identifiers in user-visible order."""
        return tuple(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, profile_id: object) -> bool:
        return profile_id in self._profiles

    def list(self) -> list[Primer]:
        """Return primers in user-visible order."""
        return [Primer(id=profile_id, header=self._profiles[profile_id].header) for profile_id in self._order]

    def load(self, profile_id: ProfileId) -> Profile:
        """Return a stored profile."""
        try:
            return self._profiles[profile_id]
        except KeyError:
            raise ProfileNotFoundError(profile_id) from None

    def store(self, profile_id: ProfileId, profile: Profile) -> None:
        """Replace in place, or append a new identifier to the end of the order."""
        if profile_id not in self._profiles:
            self._order.append(profile_id)
        self._profiles[profile_id] = profile
        self._dirty = True

    def remove(self, profile_id: ProfileId) -> bool:
        """Remove a profile from both the map and the order."""
        if profile_id not in self._profiles:
            return False
        del self._profiles[profile_id]
        self._order.remove(profile_id)
        self._dirty = True
        return True

    def reorder(self, order: Sequence[ProfileId]) -> bool:
        """Move the given identifiers into the given relative order.

        Unknown identifiers are ignored. If an identifier appears more than
        once the whole request is rejected and False is returned. Stored
        identifiers missing from `order` keep their previous relative order
        and follow the ones that were given.
        """
        positions = {profile_id: index for index, profile_id in enumerate(self._order)}
        resolved = [positions[profile_id] for profile_id in order if profile_id in positions]
        if len(set(resolved)) != len(resolved):
            logger.warning("Rejected reorder request with duplicate identifiers")
            return False

        placed = [self._order[index] for index in resolved]
        placed_ids = set(placed)
        new_order = placed + [profile_id for profile_id in self._order if profile_id not in placed_ids]
        if new_order != self._order:
            self._order = new_order
            self._dirty = True
        return True

    def flush(self) -> ExportResult:
        """Rewrite the whole file from memory.

        The document is written to a private temporary file next to the
        target and renamed over it, so the target is either the previous or
        the new document. IO failures are logged and reported in the
        returned result, never raised.
        """
        document = serialize_profiles(self._profiles, self._order, __version__)
        try:
            self._write_atomic(document.encode("utf-8"))
        except OSError as exc:
            logger.error("Could not save %d profiles to %s: %s", len(self._order), self.path, exc)
            result = ExportResult(path=self.path, profile_count=len(self._order), error=str(exc))
        else:
            self._dirty = False
            self._signature = self._stat_signature()
            logger.debug("Saved %d profiles to %s", len(self._order), self.path)
            result = ExportResult(path=self.path, profile_count=len(self._order))
        self.last_export = result
        return result

    def check_for_external_changes(self) -> bool:
        """Reload the file if it was modified outside this store.

        The external edit is treated as the newest write: in-memory state is
        replaced by the file's content, and `storage_changed` fires.
        """
        if self._stat_signature() == self._signature:
            return False
        if self._dirty:
            logger.warning("Profiles file %s changed on disk; discarding unsaved local changes", self.path)
        self.last_import = self._import()
        self._dirty = False
        self.storage_changed.emit()
        return True

    def close(self) -> None:
        """Save unsaved changes; further calls do nothing."""
        if self._closed:
            return
        if self._dirty:
            self.flush()
        self._closed = True

    def __enter__(self) -> LocalXmlStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort save on garbage collection."""
        try:
            self.close()
        except Exception:
            pass

    def _import(self) -> ImportResult:
        self._profiles = {}
        self._order = []
        try:
            parsed = parse_profiles(self._read_chunks())
        except FileNotFoundError:
            self._signature = None
            logger.debug("No profiles file at %s yet", self.path)
            return ImportResult(path=self.path, profile_count=0)
        except (OSError, ParseFailure) as exc:
            self._signature = self._stat_signature()
            logger.warning("Could not load profiles from %s, starting empty: %s", self.path, exc)
            return ImportResult(path=self.path, profile_count=0, error=str(exc))

        self._profiles = parsed.profiles
        self._order = parsed.order
        self._signature = self._stat_signature()
        logger.debug("Loaded %d profiles from %s", len(self._order), self.path)
        return ImportResult(path=self.path, profile_count=len(self._order), skipped_fields=parsed.skipped_fields)

    def _read_chunks(self) -> Iterator[bytes]:
        with self.path.open("rb") as handle:
            while chunk := handle.read(READ_CHUNK_SIZE):
                yield chunk

    def _write_atomic(self, data: bytes) -> None:
        try:
            fd, tmp_name = self._create_temp()
        except FileNotFoundError:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = self._create_temp()
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def _create_temp(self) -> tuple[int, str]:
        # mkstemp creates the file with 0o600 permissions.
        return tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)

    def _stat_signature(self) -> StatSignature | None:
        try:
            stat = self.path.stat()
        except OSError:
            return None
        return (stat.st_mtime_ns, stat.st_size)
