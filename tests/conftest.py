from __future__ import annotations

import shutil
import sys
from collections.abc import Iterator, Sequence
from pathlib import Path
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tempodeck.models import Primer, Profile  # noqa: E402
from tempodeck.storage import ProfileNotFoundError, StorageBackend  # noqa: E402


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide a per-test directory under ``.tmp_profiles/`` in the project.

    Overrides pytest's builtin ``tmp_path`` so profile files written by the
    tests stay inside the working tree.
    """
    base = ROOT / ".tmp_profiles"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


class MemoryBackend(StorageBackend):
    """Dict-backed storage used to exercise the manager without files."""

    def __init__(self) -> None:
        super().__init__()
        self.profiles: dict[str, Profile] = {}
        self.order: list[str] = []
        self.flushed = 0
        self.closed = False

    def list(self) -> list[Primer]:
        return [Primer(id=profile_id, header=self.profiles[profile_id].header) for profile_id in self.order]

    def load(self, profile_id: str) -> Profile:
        if profile_id not in self.profiles:
            raise ProfileNotFoundError(profile_id)
        return self.profiles[profile_id]

    def store(self, profile_id: str, profile: Profile) -> None:
        if profile_id not in self.profiles:
            self.order.append(profile_id)
        self.profiles[profile_id] = profile

    def reorder(self, order: Sequence[str]) -> bool:
        known = [profile_id for profile_id in order if profile_id in self.profiles]
        if len(set(known)) != len(known):
            return False
        self.order = known + [profile_id for profile_id in self.order if profile_id not in known]
        return True

    def remove(self, profile_id: str) -> bool:
        if profile_id not in self.profiles:
            return False
        del self.profiles[profile_id]
        self.order.remove(profile_id)
        return True

    def flush(self) -> None:
        self.flushed += 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def profiles_file(tmp_path: Path) -> Path:
    return tmp_path / "data" / "profiles.xml"
