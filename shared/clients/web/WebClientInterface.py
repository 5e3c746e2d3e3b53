from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import WebAnswer


class WebClientInterface(ClientInterface):
    """Web-search collaborator. Accepts free text, returns an answer with citations.

    Treated as a black box: the retrieval router only calls ``do_search``.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        self.web_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default="sonar")
        self.web_max_tokens = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_MAX_TOKENS", default=500))
        self.web_system_prompt = helper_config.get_string_val(
            f"{self.get_client_type().upper()}_SYSTEM_PROMPT",
            default="Be precise and concise. Focus on merchant services, payment processing, and business solutions.",
        )

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "web"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """Returns the endpoint path for search/answer requests (e.g. "/chat/completions")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_search_payload(self, query: str) -> dict:
        """Build the backend-specific request body for a web search.

        Args:
            query (str): The user's question, forwarded verbatim.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_answer(self, response_data: dict) -> WebAnswer:
        """Extract the answer text and citation URLs from a raw response.

        Raises:
            ValueError: If the response does not contain an answer.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_search(self, query: str) -> WebAnswer:
        """Ask the web-search backend and return its answer.

        Raises:
            httpx.HTTPStatusError: If the request fails.
            ValueError: If the response carries no answer.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_search(),
            json=self.get_search_payload(query),
            raise_on_error=True,
        )
        return self.extract_answer(response.json())
