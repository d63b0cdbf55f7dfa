from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.index.models.IndexCreateOutcome import IndexCreateOutcome
from shared.helper.HelperConfig import HelperConfig
from shared.models.index import IndexDescriptor


class IndexClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "index"
        """
        return "index"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_create_index(self, descriptor: IndexDescriptor) -> IndexCreateOutcome:
        """
        Creates a vector index from the descriptor.

        Args:
            descriptor (IndexDescriptor): The index to create.

        Returns:
            IndexCreateOutcome: OK, ALREADY_EXISTS, or UNSUPPORTED if the backend has no vector search.

        Raises:
            IndexCreationError: For any other backend failure.
        """
        pass
