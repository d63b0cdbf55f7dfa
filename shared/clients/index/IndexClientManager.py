from shared.helper.HelperConfig import HelperConfig
from shared.clients.index.IndexClientInterface import IndexClientInterface

class IndexClientManager:
    """
    Manager class to handle the vector index client based on configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the index engine from ENV configuration.

        Returns:
            str: The name of the index engine, capitalized (e.g. "Mongodb").
        """
        engine = self.helper_config.get_string_val("INDEX_ENGINE", default="mongodb")
        engine = engine.strip().lower()
        engine = engine.capitalize()
        return engine

    def _initialize_client(self) -> IndexClientInterface:
        """
        Initializes the index client based on the engine specified in the configuration.

        Returns:
            IndexClientInterface: An instance of the index client.

        Raises:
            ValueError: If no valid index client could be instantiated from the specified engine.
        """
        engine = self._get_engine_from_env()
        className = f"IndexClient{engine}"
        try:
            module = __import__(
                f"shared.clients.index.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported index engine specified: '{engine}'. Error: {e}")

        client = client_class(helper_config=self.helper_config)
        self.logging.debug(f"Instantiated index client for engine: {engine}")
        return client

    def get_client(self) -> IndexClientInterface:
        """
        Returns the instantiated index client.

        Returns:
            IndexClientInterface: The index client instance.
        """
        return self.client
