from pymongo import AsyncMongoClient
from pymongo.errors import OperationFailure, PyMongoError
from pymongo.operations import SearchIndexModel

from shared.clients.index.IndexClientInterface import IndexClientInterface
from shared.clients.index.models.IndexCreateOutcome import IndexCreateOutcome
from shared.helper.errors import IndexCreationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.index import IndexDescriptor

# server error codes
_CODE_INDEX_ALREADY_EXISTS = 68
_CODE_COMMAND_NOT_FOUND = 59
_CODE_COMMAND_NOT_SUPPORTED = 115

_ALREADY_EXISTS_MARKERS = ("already exists", "duplicate index")
_UNSUPPORTED_MARKERS = ("not supported", "atlas", "search index commands are only supported")


class IndexClientMongodb(IndexClientInterface):
    """Creates Atlas Vector Search indexes. Connection settings fall back to the store's."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._uri = self.get_config_val("URI", default=self._get_store_fallback("STORE_MONGODB_URI"), val_type="string")
        self._database_name = self.get_config_val("DATABASE", default=self._get_store_fallback("STORE_MONGODB_DATABASE"), val_type="string")
        self._mongo: AsyncMongoClient | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "MongoDB"

    ################ CONFIG ##################
    def _get_store_fallback(self, key: str) -> str | None:
        return self._helper_config.get_optional_string_val(key)

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URI", val_type="string", default=self._get_store_fallback("STORE_MONGODB_URI")),
            EnvConfig(env_key="DATABASE", val_type="string", default=self._get_store_fallback("STORE_MONGODB_DATABASE")),
        ]

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        self._mongo = AsyncMongoClient(self._uri, serverSelectionTimeoutMS=int(self.timeout * 1000))

    async def close(self) -> None:
        if self._mongo is not None:
            await self._mongo.close()
            self._mongo = None

    async def do_healthcheck(self) -> bool:
        if self._mongo is None:
            raise Exception("MongoDB index client not initialised. Call boot() before making requests.")
        try:
            await self._mongo[self._database_name].command("ping")
            return True
        except PyMongoError as exc:
            self.logging.error("MongoDB index backend healthcheck failed: %s", exc)
            return False

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_create_index(self, descriptor: IndexDescriptor) -> IndexCreateOutcome:
        if self._mongo is None:
            raise Exception("MongoDB index client not initialised. Call boot() before making requests.")
        collection = self._mongo[self._database_name][descriptor.target_collection]
        model = SearchIndexModel(
            definition=descriptor.to_definition(),
            name=descriptor.name,
            type="vectorSearch",
        )
        try:
            await collection.create_search_index(model)
        except OperationFailure as exc:
            return self._classify_failure(exc)
        except PyMongoError as exc:
            raise IndexCreationError(f"Creating index '{descriptor.name}' failed: {exc}") from exc
        return IndexCreateOutcome.OK

    def _classify_failure(self, exc: OperationFailure) -> IndexCreateOutcome:
        """
        Maps a server failure to an outcome.

        Raises:
            IndexCreationError: If the failure is neither 'exists' nor 'unsupported'.
        """
        message = str(exc).lower()
        if exc.code == _CODE_INDEX_ALREADY_EXISTS or any(marker in message for marker in _ALREADY_EXISTS_MARKERS):
            return IndexCreateOutcome.ALREADY_EXISTS
        if exc.code in (_CODE_COMMAND_NOT_FOUND, _CODE_COMMAND_NOT_SUPPORTED) or any(marker in message for marker in _UNSUPPORTED_MARKERS):
            return IndexCreateOutcome.UNSUPPORTED
        raise IndexCreationError(str(exc)) from exc
