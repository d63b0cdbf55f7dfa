from abc import ABC, abstractmethod
from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.clients.store.models.ChangeEvent import ChangeEvent
from shared.helper.HelperConfig import HelperConfig


class WatchSubscription(ABC):
    """An open change feed on one collection. Iterate it for events, close it when done."""

    def __aiter__(self) -> "WatchSubscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self.next_event()

    @abstractmethod
    async def next_event(self) -> ChangeEvent:
        """
        Waits for the next change event.

        Returns:
            ChangeEvent: The next insert/update/replace event.

        Raises:
            StopAsyncIteration: If the feed ended.
            WatchSubscriptionError: If the feed broke.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Closes the underlying feed. Safe to call more than once."""
        pass


class StoreClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "store"
        """
        return "store"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_list_collections(self) -> list[str]:
        """
        Lists all user collections, excluding backend system collections.

        Returns:
            list[str]: Collection names.
        """
        pass

    @abstractmethod
    async def do_distinct_values(self, collection_name: str, field: str, filter: dict | None = None) -> list[Any]:
        """
        Returns the distinct values of a field.

        Args:
            collection_name (str): The collection to query.
            field (str): Dot-notation field path.
            filter (dict | None): Optional equality filter.

        Returns:
            list[Any]: Distinct values, without None.
        """
        pass

    @abstractmethod
    async def do_find_one(self, collection_name: str, filter: dict) -> dict | None:
        """
        Fetches one document matching the filter.

        Args:
            collection_name (str): The collection to query.
            filter (dict): Equality filter.

        Returns:
            dict | None: The document, or None if nothing matches.
        """
        pass

    @abstractmethod
    async def do_count(self, collection_name: str, filter: dict) -> int:
        """
        Counts the documents matching the filter.

        Args:
            collection_name (str): The collection to query.
            filter (dict): Equality filter.

        Returns:
            int: Number of matching documents.
        """
        pass

    @abstractmethod
    async def do_find(self, collection_name: str, filter: dict, skip: int = 0, limit: int = 50) -> list[dict]:
        """
        Fetches one page of documents matching the filter, in a stable order.

        Args:
            collection_name (str): The collection to query.
            filter (dict): Equality filter.
            skip (int): Number of matching documents to skip.
            limit (int): Maximum page size.

        Returns:
            list[dict]: The page of documents.
        """
        pass

    @abstractmethod
    async def do_update_one(self, collection_name: str, document_id: Any, fields: dict, upsert: bool = False) -> bool:
        """
        Sets the given fields on one document as a single atomic update.

        Args:
            collection_name (str): The collection holding the document.
            document_id (Any): The document's native ID.
            fields (dict): Field-set to write.
            upsert (bool): Create the document if it does not exist.

        Returns:
            bool: True if a document matched (or was created).
        """
        pass

    @abstractmethod
    async def do_watch(self, collection_name: str, resume_token: Any | None = None) -> WatchSubscription:
        """
        Opens a change feed for insert/update/replace events carrying full documents.

        Args:
            collection_name (str): The collection to watch.
            resume_token (Any | None): Resume after this position; None starts from now.

        Returns:
            WatchSubscription: The open feed.

        Raises:
            WatchSubscriptionError: If the feed cannot be opened.
        """
        pass
