from shared.helper.HelperConfig import HelperConfig
from shared.clients.web.WebClientInterface import WebClientInterface


class WebClientManager:
    """
    Manager class to instantiate the configured Web client.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        engine = self.helper_config.get_string_val("WEB_ENGINE", default="perplexity")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> WebClientInterface | None:
        """
        Imports and instantiates ``shared.clients.web.{engine}.WebClient{Engine}``.

        Raises:
            ValueError: If the engine is unknown or its class cannot be loaded.
        """
        engine = self._get_engine_from_env()
        if engine == "None":
            self.logging.info("Web search disabled (WEB_ENGINE=none).")
            return None
        className = f"WebClient{engine}"
        try:
            module = __import__(
                f"shared.clients.web.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported Web engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated Web client for engine: %s", engine)
        return client

    def get_client(self) -> WebClientInterface | None:
        return self.client
