from abc import abstractmethod
from typing import Any
import json

import httpx
from shared.clients.rag.models.SearchResult import SearchResult
from shared.clients.ClientInterface import ClientInterface

from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    """Vector backend client. Filters passed in and out are Qdrant-style
    condition lists (``{"key": ..., "match": {"value": ...}}``); engines that
    speak another dialect translate them in their payload builders."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "rag"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for similarity search requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/search")
        """
        pass

    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points")
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points by filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/delete")
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_payload_index(self) -> str:
        """Returns the endpoint path for creating a keyword index on a payload field."""
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        """Returns the endpoint path for counting points matching a filter."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_search_payload(self, vector: list[float], filters: list[dict], limit: int) -> dict:
        """
        Builds the backend-specific request payload for a similarity search.

        Args:
            vector (list[float]): The query embedding.
            filters (list[dict]): Conditions that every returned point must satisfy.
            limit (int): Maximum number of points to return.

        Returns:
            dict: The payload for the search request.
        """
        pass

    @abstractmethod
    def get_count_payload(self, filters: list[dict]) -> dict:
        """Builds the backend-specific request payload for a point count."""
        pass

    @abstractmethod
    def get_delete_payload(self, filters: list[dict]) -> dict:
        """Builds the backend-specific request payload for a filter-based delete."""
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_search_content(self, raw_response: dict) -> dict:
        """
        Extracts the scored points from a raw search response.

        Returns:
            dict: A dict with keys "result" (list of {id, score, payload}), "status", "time".
        """
        pass

    @abstractmethod
    def extract_count(self, raw_response: dict) -> int:
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend."""
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_check_collection_existence())
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_create_collection(self, vector_size: int = 768, distance: str = "Cosine") -> httpx.Response:
        """Create the collection in the rag backend.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.
        """
        return await self.do_request(
            method="PUT",
            json={
                "vectors": {
                    "size": vector_size,
                    "distance": distance}},
            endpoint=self._get_endpoint_create_collection(),
            raise_on_error=True)

    async def do_create_payload_index(self, field_name: str) -> httpx.Response:
        """Create a keyword index on a payload field used in filters (namespace, document_id)."""
        return await self.do_request(
            method="PUT",
            json={"field_name": field_name, "field_schema": "keyword"},
            endpoint=self._get_endpoint_payload_index(),
            raise_on_error=True)

    async def do_upsert_points(self, points: list[dict[str, Any]]) -> httpx.Response:
        """Upsert points into the collection.
        Inserts new points or replaces existing ones with the same ID.

        Args:
            points (list[dict[str, Any]]): Points with ``id``, ``vector`` and ``payload``.
        """
        return await self.do_request(
            method="PUT",
            content=json.dumps({"points": points}),
            endpoint=self._get_endpoint_points(),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True)

    async def do_delete_points_by_filter(self, filters: list[dict]) -> None:
        """Deletes all points matching every condition in ``filters``.

        Args:
            filters (list[dict]): Conditions identifying the points to delete.
                                  Must always include the namespace or document_id.
        """
        if not filters:
            raise ValueError("Refusing to delete points with an empty filter.")
        await self.do_request(
            method="POST",
            content=json.dumps(self.get_delete_payload(filters)),
            endpoint=self._get_endpoint_delete_points(),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_search(self, vector: list[float], filters: list[dict], limit: int) -> SearchResult:
        """Run a filtered similarity search.

        Args:
            vector (list[float]): Query embedding.
            filters (list[dict]): Conditions that every hit must satisfy.
            limit (int): Maximum number of hits.

        Returns:
            SearchResult: Scored points, best first.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_search_payload(vector, filters, limit)),
            endpoint=self._get_endpoint_search(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        content = self.extract_search_content(raw_response=resp.json())
        return SearchResult(
            result=content.get("result", []),
            status=content.get("status", "ok"),
            time=content.get("time", 0),
        )

    async def do_count(self, filters: list[dict]) -> int:
        """Count the points matching the given filters."""
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_count_payload(filters)),
            endpoint=self._get_endpoint_count(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return self.extract_count(resp.json())
