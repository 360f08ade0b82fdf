"""Profile manager: the entry point consumers use to work with profiles."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from pathlib import Path

from .models import Content, Header, Primer, Profile, ProfileId
from .signals import Signal
from .storage import StorageBackend
from .xml_store import LocalXmlStore

logger = logging.getLogger(__name__)


def new_profile_id() -> ProfileId:
    """Mint a random, globally unique profile identifier."""
    return str(uuid.uuid4())


class ProfileManager:
    """Coordinates one storage backend and notifies observers of changes.

    `changed` fires once after every mutation that took effect, after a
    backend swap, and after the backend reported an external modification.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self.changed = Signal()
        self._backend = backend
        self._backend.storage_changed.connect(self._on_storage_changed)

    @classmethod
    def open(cls, path: Path | str | None = None) -> ProfileManager:
        """Create a manager over a local profiles file."""
        return cls(LocalXmlStore(path))

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    def set_backend(self, backend: StorageBackend) -> None:
        """Replace the storage backend; the previous one is not closed."""
        self._backend.storage_changed.disconnect(self._on_storage_changed)
        self._backend = backend
        self._backend.storage_changed.connect(self._on_storage_changed)
        self.changed.emit()

    def new_profile(self, header: Header | None = None, content: Content | None = None) -> Primer:
        """Store a new profile and return its primer."""
        profile_id = new_profile_id()
        profile = Profile(
            header=header if header is not None else Header(),
            content=content if content is not None else Content(),
        )
        self._backend.store(profile_id, profile)
        logger.debug("Created profile %s", profile_id)
        self.changed.emit()
        return Primer(id=profile_id, header=profile.header)

    def delete_profile(self, profile_id: ProfileId) -> bool:
        """Delete a profile; return whether it existed."""
        removed = self._backend.remove(profile_id)
        if removed:
            self.changed.emit()
        return removed

    def profile_list(self) -> list[Primer]:
        """Return primers of all profiles in user-visible order."""
        return self._backend.list()

    def get_profile(self, profile_id: ProfileId) -> Profile:
        """Return a profile; raises `ProfileNotFoundError` for unknown ids."""
        return self._backend.load(profile_id)

    def set_profile(self, profile_id: ProfileId, profile: Profile) -> None:
        """Store a full profile under an identifier."""
        self._backend.store(profile_id, profile)
        self.changed.emit()

    def get_profile_content(self, profile_id: ProfileId) -> Content:
        return self.get_profile(profile_id).content

    def set_profile_content(self, profile_id: ProfileId, content: Content) -> None:
        """Replace only the content of an existing profile."""
        self._backend.update(profile_id, content=content)
        self.changed.emit()

    def get_profile_header(self, profile_id: ProfileId) -> Header:
        return self.get_profile(profile_id).header

    def set_profile_header(self, profile_id: ProfileId, header: Header) -> None:
        """Replace only the header of an existing profile."""
        self._backend.update(profile_id, header=header)
        self.changed.emit()

    def reorder_profiles(self, order: Sequence[ProfileId]) -> bool:
        """Apply a new profile order; return False when it was rejected."""
        accepted = self._backend.reorder(order)
        if accepted:
            self.changed.emit()
        return accepted

    def sync(self) -> bool:
        """Let the backend pick up external modifications of its storage."""
        return self._backend.check_for_external_changes()

    def flush(self) -> None:
        self._backend.flush()

    def close(self) -> None:
        """Close the backend, persisting pending changes."""
        self._backend.close()

    def __enter__(self) -> ProfileManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _on_storage_changed(self) -> None:
        logger.info("Profile storage changed outside this process")
        self.changed.emit()
