from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface


class EmbedClientManager:
    """
    Instantiates the embedding client selected by EMBED_ENGINE (default: ollama).
    Chunk vectors and query vectors must come from the same model, so there
    is exactly one embed client per process.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        engine = self.helper_config.get_string_val("EMBED_ENGINE", default="ollama")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> EmbedClientInterface:
        """
        Imports and instantiates ``shared.clients.embed.{engine}.EmbedClient{Engine}``.

        Raises:
            ValueError: If the engine is unknown or its class cannot be loaded.
        """
        engine = self._get_engine_from_env()
        className = f"EmbedClient{engine}"
        try:
            module = __import__(
                f"shared.clients.embed.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported embedding engine '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated embed client for engine: %s (model %s)", engine, client.embed_model)
        return client

    def get_client(self) -> EmbedClientInterface:
        return self.client
