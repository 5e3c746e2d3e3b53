from shared.clients.web.WebClientInterface import WebClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.search import WebAnswer


class WebClientPerplexity(WebClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.perplexity.ai", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._recency_filter = self.get_config_val("RECENCY_FILTER", default="month", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Perplexity"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.perplexity.ai"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="RECENCY_FILTER", val_type="string", default="month"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        # no dedicated health route, model listing is cheap and authenticated
        return "/models"

    def _get_endpoint_search(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_search_payload(self, query: str) -> dict:
        return {
            "model": self.web_model,
            "messages": [
                {"role": "system", "content": self.web_system_prompt},
                {"role": "user", "content": query},
            ],
            "max_tokens": self.web_max_tokens,
            "temperature": 0.2,
            "top_p": 0.9,
            "return_images": False,
            "return_related_questions": False,
            "search_recency_filter": self._recency_filter,
            "stream": False,
        }

    ################ RESPONSE PARSER ##################
    def extract_answer(self, response_data: dict) -> WebAnswer:
        choices = response_data.get("choices") or []
        if not choices:
            raise ValueError(f"Perplexity response has no choices. Keys: {list(response_data.keys())}")
        text = (choices[0].get("message") or {}).get("content") or ""
        if not text.strip():
            raise ValueError("Perplexity response contains an empty answer.")
        return WebAnswer(text=text, citations=[str(c) for c in response_data.get("citations") or []])
