from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientOllama(EmbedClientInterface):
    """Embeddings from a local Ollama server (``/api/embed``)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._keep_alive = self.get_config_val("KEEP_ALIVE", default="5m", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="KEEP_ALIVE", val_type="string", default="5m"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        # only needed behind an authenticating proxy
        return {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/version"

    def _get_endpoint_models(self) -> str:
        return "/api/tags"

    def get_endpoint_embedding(self) -> str:
        return "/api/embed"

    def get_endpoint_model_details(self) -> str:
        return "/api/show"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        # server-side truncation covers token limits the char cut misses
        return {"model": self.embed_model, "input": texts, "truncate": True, "keep_alive": self._keep_alive}

    ##########################################
    ############ RESPONSE PARSER #############
    ##########################################

    def extract_vector_size_from_model_info(self, model_info: dict) -> int:
        """Read ``<arch>.embedding_length`` from an ``/api/show`` response."""
        for key, value in (model_info.get("model_info") or {}).items():
            if key.endswith(".embedding_length"):
                return int(value)
        raise ValueError(f"Ollama did not report an embedding length for model '{self.embed_model}'.")

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        embeddings = response_data.get("embeddings")
        if not embeddings or any(not vector for vector in embeddings):
            raise ValueError(
                f"Ollama returned no usable embeddings for model '{self.embed_model}'. "
                f"Response keys: {list(response_data.keys())}"
            )
        return embeddings
