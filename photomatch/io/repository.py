"""Profile and signature storage used by ingestion and matching."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import replace
from datetime import datetime
from threading import Lock
from typing import Dict, List, NamedTuple, Protocol

from .models import Profile, ProfileImage, Signature

logger = logging.getLogger(__name__)


class CorpusEntry(NamedTuple):
    profile: Profile
    image: ProfileImage
    signature: Signature | None


class SignatureRepository(Protocol):
    """Storage contract for profiles, their images, and image signatures."""

    def list_all_signatures(self) -> List[CorpusEntry]:
        ...

    def save_signature(self, image_id: str, signature: Signature) -> None:
        ...

    def upsert_profile(
        self,
        external_id: str,
        name: str | None = None,
        age: int | None = None,
        distance: int | None = None,
    ) -> Profile:
        ...

    def add_image(
        self, profile_id: str, url: str, signature: Signature | None = None
    ) -> ProfileImage:
        ...

    def get_profile(self, external_id: str) -> Profile | None:
        ...

    def images_for(self, external_id: str) -> List[ProfileImage]:
        ...


def image_id_for(profile_id: str, url: str) -> str:
    """Return the stable image identifier for *url* under *profile_id*."""
    return hashlib.sha1(f"{profile_id}\n{url}".encode("utf-8")).hexdigest()


class InMemoryRepository:
    """Lock-protected in-process repository.

    Images are immutable records replaced wholesale on update, so a listing is
    a consistent snapshot that later appends never alter.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._profiles: Dict[str, Profile] = {}
        self._images: Dict[str, ProfileImage] = {}

    def upsert_profile(
        self,
        external_id: str,
        name: str | None = None,
        age: int | None = None,
        distance: int | None = None,
        created_at: datetime | None = None,
    ) -> Profile:
        """Return the profile for *external_id*, creating it on first sight."""
        if not external_id:
            raise ValueError("Profiles require a non-empty external_id")
        with self._lock:
            existing = self._profiles.get(external_id)
            if existing is not None:
                return _copy_profile(existing)
            profile = Profile(external_id=external_id, name=name, age=age, distance=distance)
            if created_at is not None:
                profile.created_at = created_at
            self._profiles[external_id] = profile
            logger.debug("Created profile %s", external_id)
            return _copy_profile(profile)

    def add_image(
        self, profile_id: str, url: str, signature: Signature | None = None
    ) -> ProfileImage:
        """Attach *url* to a profile, replacing the signature if the URL is known."""
        image = ProfileImage(
            image_id=image_id_for(profile_id, url),
            profile_id=profile_id,
            url=url,
            signature=signature,
        )
        with self._lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                raise KeyError(f"Unknown profile: {profile_id}")
            if image.image_id not in self._images:
                profile.image_ids.append(image.image_id)
            self._images[image.image_id] = image
        return image

    def save_signature(self, image_id: str, signature: Signature) -> None:
        with self._lock:
            image = self._images.get(image_id)
            if image is None:
                raise KeyError(f"Unknown image: {image_id}")
            self._images[image_id] = replace(image, signature=signature)

    def get_profile(self, external_id: str) -> Profile | None:
        with self._lock:
            profile = self._profiles.get(external_id)
            return _copy_profile(profile) if profile is not None else None

    def images_for(self, external_id: str) -> List[ProfileImage]:
        with self._lock:
            profile = self._profiles.get(external_id)
            if profile is None:
                return []
            return [self._images[image_id] for image_id in profile.image_ids]

    def profiles(self) -> List[Profile]:
        with self._lock:
            return [_copy_profile(profile) for profile in self._profiles.values()]

    def list_all_signatures(self) -> List[CorpusEntry]:
        """Return a snapshot of every stored image in insertion order."""
        with self._lock:
            snapshot = list(self._images.values())
            owners = {
                image.profile_id: _copy_profile(self._profiles[image.profile_id])
                for image in snapshot
            }
        return [CorpusEntry(owners[image.profile_id], image, image.signature) for image in snapshot]

    def __len__(self) -> int:
        with self._lock:
            return len(self._images)


def _copy_profile(profile: Profile) -> Profile:
    return replace(profile, image_ids=list(profile.image_ids))
