"""Document type discovery.

Enumerates the document types of every collection and derives one structural
profile per type from a single representative document. Discovery only reads
from the store and is safe to re-run at any time.
"""

from datetime import datetime, timezone

from services.vector_sync.ProfileRegistry import ProfileRegistry
from services.vector_sync.StructureAnalyzer import DISCRIMINATOR_FIELD, analyze_document_structure
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.errors import DiscoveryError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import VectorSyncSettings
from shared.models.profile import DocumentTypeProfile


class DiscoveryService:
    """Builds and refreshes the profile registry from the document store."""

    def __init__(
        self,
        helper_config: HelperConfig,
        store_client: StoreClientInterface,
        settings: VectorSyncSettings,
        registry: ProfileRegistry | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store_client = store_client
        self._settings = settings
        self.registry = registry if registry is not None else ProfileRegistry()

    ##########################################
    ############## DISCOVERY #################
    ##########################################

    async def do_discover(self, collections: list[str] | None = None) -> list[DocumentTypeProfile]:
        """Discover all document types and refresh the registry.

        A collection whose documents carry a string discriminator yields one
        profile per distinct value; otherwise the whole collection becomes one
        implicit type named after it. Empty collections and types without
        documents yield no profile. A failing collection is logged and skipped.

        Args:
            collections (list[str] | None): Restrict discovery to these names.
                Falls back to the configured allow-list, then to every collection.

        Returns:
            list[DocumentTypeProfile]: The discovered profiles.

        Raises:
            DiscoveryError: If the collections cannot be listed at all.
        """
        allow_list = collections or self._settings.collections
        try:
            collection_names = await self._store_client.do_list_collections()
        except Exception as exc:
            raise DiscoveryError(f"Listing collections failed: {exc}") from exc

        collection_names = [name for name in collection_names if self._is_discoverable(name, allow_list)]
        self.logging.info("Discovering document types in %d collections...", len(collection_names))

        profiles: list[DocumentTypeProfile] = []
        for collection_name in collection_names:
            try:
                profiles.extend(await self._discover_collection(collection_name))
            except Exception as exc:
                self.logging.error("Discovery failed for collection '%s': %s. Skipping.", collection_name, exc)

        if allow_list:
            self.registry.replace_collections(collection_names, profiles)
        else:
            self.registry.replace_all(profiles)

        for profile in profiles:
            self.logging.info(
                "Discovered type '%s' in '%s' (%d documents, %d text, %d identifier fields)",
                profile.type_name,
                profile.source_collection,
                profile.sample_count,
                len(profile.text_fields),
                len(profile.identifier_fields),
            )
        self.logging.info("Discovery complete: %d document types.", len(profiles))
        return profiles

    async def do_discover_type(self, collection_name: str, type_name: str) -> DocumentTypeProfile | None:
        """Discover a single type, e.g. when a change event names an unknown one.

        Concurrent calls for the same type are serialised and the registry is
        checked again once the lock is held.

        Args:
            collection_name (str): Collection the type lives in.
            type_name (str): Discriminator value, or the collection name for implicit types.

        Returns:
            DocumentTypeProfile | None: The profile, or None if no document of the type exists.

        Raises:
            DiscoveryError: If the store could not be queried.
        """
        async with self.registry.get_key_lock(collection_name, type_name):
            existing = self.registry.get(collection_name, type_name)
            if existing is not None:
                return existing

            discriminated = type_name != collection_name
            if not discriminated:
                # a collection-named type may still be a real discriminator value
                discriminated = await self._has_type_value(collection_name, type_name)
            if not discriminated and await self._has_any_type_value(collection_name):
                self.logging.warning(
                    "Collection '%s' is typed, document without a known type value is not profiled.", collection_name
                )
                return None
            try:
                profile = await self._build_profile(collection_name, type_name, discriminated)
            except Exception as exc:
                raise DiscoveryError(f"Discovering type '{type_name}' in '{collection_name}' failed: {exc}") from exc

            if profile is None:
                self.logging.warning("Type '%s' in '%s' has no documents, nothing to profile.", type_name, collection_name)
                return None
            self.registry.put(profile)
            self.logging.info("Discovered new type '%s' in '%s' on demand.", type_name, collection_name)
            return profile

    ##########################################
    ################ HELPER ##################
    ##########################################

    def _is_discoverable(self, collection_name: str, allow_list: list[str] | None) -> bool:
        if collection_name.startswith("system."):
            return False
        if self._settings.cursor_collection and collection_name == self._settings.cursor_collection:
            return False
        if allow_list and collection_name not in allow_list:
            return False
        return True

    async def _has_type_value(self, collection_name: str, type_name: str) -> bool:
        try:
            return await self._store_client.do_count(collection_name, {DISCRIMINATOR_FIELD: type_name}) > 0
        except Exception as exc:
            raise DiscoveryError(f"Counting type '{type_name}' in '{collection_name}' failed: {exc}") from exc

    async def _has_any_type_value(self, collection_name: str) -> bool:
        try:
            values = await self._store_client.do_distinct_values(collection_name, DISCRIMINATOR_FIELD)
        except Exception as exc:
            raise DiscoveryError(f"Listing types in '{collection_name}' failed: {exc}") from exc
        return any(isinstance(value, str) and value.strip() for value in values)

    async def _discover_collection(self, collection_name: str) -> list[DocumentTypeProfile]:
        values = await self._store_client.do_distinct_values(collection_name, DISCRIMINATOR_FIELD)
        type_names = sorted({value for value in values if isinstance(value, str) and value.strip()})

        profiles: list[DocumentTypeProfile] = []
        if type_names:
            for type_name in type_names:
                profile = await self._build_profile(collection_name, type_name, discriminated=True)
                if profile is not None:
                    profiles.append(profile)
            return profiles

        profile = await self._build_profile(collection_name, collection_name, discriminated=False)
        if profile is None:
            self.logging.debug("Collection '%s' is empty, no profile.", collection_name)
            return []
        return [profile]

    async def _build_profile(self, collection_name: str, type_name: str, discriminated: bool) -> DocumentTypeProfile | None:
        query = {DISCRIMINATOR_FIELD: type_name} if discriminated else {}
        sample = await self._store_client.do_find_one(collection_name, query)
        if sample is None:
            return None
        structure = analyze_document_structure(sample)
        sample_count = await self._store_client.do_count(collection_name, query)
        return DocumentTypeProfile(
            type_name=type_name,
            source_collection=collection_name,
            discriminated=discriminated,
            sample_count=sample_count,
            discovered_at=datetime.now(timezone.utc),
            **structure.model_dump(),
        )
