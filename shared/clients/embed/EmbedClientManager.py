from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface

SUPPORTED_ENGINES = ("openai", "ollama")


class EmbedClientManager:
    """
    Resolves the embedding provider named by EMBED_ENGINE to its client class.

    Clients live in shared.clients.embed.<engine>.EmbedClient<Engine> and are
    constructed eagerly, so missing provider credentials fail at startup.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the embedding engine from ENV configuration.

        Returns:
            str: The engine name, capitalized (e.g. "Openai").

        Raises:
            ValueError: If EMBED_ENGINE is not set or not a supported provider.
        """
        engine = self.helper_config.get_string_val("EMBED_ENGINE").strip().lower()
        if engine not in SUPPORTED_ENGINES:
            raise ValueError(
                f"Unsupported Embed engine specified: '{engine}'. Supported: {', '.join(SUPPORTED_ENGINES)}."
            )
        return engine.capitalize()

    def _initialize_client(self) -> EmbedClientInterface:
        """
        Imports and instantiates the client class of the configured engine.

        Returns:
            EmbedClientInterface: The embedding client, not yet booted.

        Raises:
            ValueError: If the engine is unsupported or its configuration is incomplete.
        """
        engine = self._get_engine_from_env()
        class_name = f"EmbedClient{engine}"
        module = __import__(f"shared.clients.embed.{engine.lower()}.{class_name}", fromlist=[class_name])
        client = getattr(module, class_name)(helper_config=self.helper_config)
        self.logging.info("Embedding provider: %s, model %s.", client.get_engine_name(), client.embed_model)
        return client

    def get_client(self) -> EmbedClientInterface:
        return self.client
