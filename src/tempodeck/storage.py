"""Storage contract shared by every profile persistence backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import replace

from .models import Content, Header, Primer, Profile, ProfileId
from .signals import Signal


class ProfileNotFoundError(KeyError):
    """Raised when a profile identifier is not present in storage."""

    def __init__(self, profile_id: ProfileId) -> None:
        super().__init__(profile_id)
        self.profile_id = profile_id

    def __str__(self) -> str:
        return f"profile with id '{self.profile_id}' does not exist"


class StorageBackend(ABC):
    """Operations a profile persistence backend provides.

    Backends fire `storage_changed` after they detected that the underlying
    medium was modified outside this process and have reconciled their
    in-memory state with it.
    """

    def __init__(self) -> None:
        self.storage_changed = Signal()

    @abstractmethod
    def list(self) -> list[Primer]:
        """Return primers of all stored profiles in user-visible order."""

    @abstractmethod
    def load(self, profile_id: ProfileId) -> Profile:
        """Return one profile; raise `ProfileNotFoundError` for unknown ids."""

    @abstractmethod
    def store(self, profile_id: ProfileId, profile: Profile) -> None:
        """Replace a profile in place, or append it when the id is new."""

    @abstractmethod
    def reorder(self, order: Sequence[ProfileId]) -> bool:
        """Apply a new order of identifiers; return whether the order was accepted."""

    @abstractmethod
    def remove(self, profile_id: ProfileId) -> bool:
        """Remove a profile; return whether it existed."""

    def update(
        self,
        profile_id: ProfileId,
        *,
        header: Header | None = None,
        content: Content | None = None,
    ) -> Profile:
        """Replace the header and/or content of an existing profile."""
        profile = self.load(profile_id)
        if header is not None:
            profile = replace(profile, header=header)
        if content is not None:
            profile = replace(profile, content=content)
        self.store(profile_id, profile)
        return profile

    def check_for_external_changes(self) -> bool:
        """Reconcile with out-of-process modifications; return whether any were found."""
        return False

    def flush(self) -> object:
        """Write pending changes to the underlying medium."""
        return None

    def close(self) -> None:
        """Release the backend, persisting pending changes."""
        self.flush()
