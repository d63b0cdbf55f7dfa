"""In-memory registry of document type profiles.

The registry is owned by the discovery service and handed by reference to the
components that read it. Profiles are replaced wholesale on a refresh and
individually when an unknown type is discovered on demand.
"""

import asyncio

from shared.models.profile import DocumentTypeProfile, make_profile_key


class ProfileRegistry:
    def __init__(self) -> None:
        self._profiles: dict[str, DocumentTypeProfile] = {}
        self._key_locks: dict[str, asyncio.Lock] = {}

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get(self, collection_name: str, type_name: str) -> DocumentTypeProfile | None:
        return self._profiles.get(make_profile_key(collection_name, type_name))

    def get_for_collection(self, collection_name: str) -> list[DocumentTypeProfile]:
        return [profile for profile in self._profiles.values() if profile.source_collection == collection_name]

    def list_profiles(self) -> list[DocumentTypeProfile]:
        """All profiles, ordered by collection and type name."""
        return sorted(self._profiles.values(), key=lambda profile: (profile.source_collection, profile.type_name))

    def collections(self) -> list[str]:
        return sorted({profile.source_collection for profile in self._profiles.values()})

    def get_key_lock(self, collection_name: str, type_name: str) -> asyncio.Lock:
        """Lock serialising on-demand discovery of one type, so bursts trigger it once."""
        key = make_profile_key(collection_name, type_name)
        lock = self._key_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._key_locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._profiles)

    ##########################################
    ################ SETTER ##################
    ##########################################

    def put(self, profile: DocumentTypeProfile) -> None:
        self._profiles[profile.get_key()] = profile

    def replace_all(self, profiles: list[DocumentTypeProfile]) -> None:
        """Swap in the result of a full discovery run."""
        self._profiles = {profile.get_key(): profile for profile in profiles}

    def replace_collections(self, collection_names: list[str], profiles: list[DocumentTypeProfile]) -> None:
        """Swap in the profiles of the given collections, keeping all others."""
        kept = {
            key: profile
            for key, profile in self._profiles.items()
            if profile.source_collection not in collection_names
        }
        kept.update({profile.get_key(): profile for profile in profiles})
        self._profiles = kept
