"""
Vector store client: Milvus Cloud connection, embeddings (HF Inference API), and employee summaries.

Responsibility: Embed text via all-MiniLM-L6-v2, search employee summary vectors,
and upsert summaries for the seeding script.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from app.core.config import (
    EMBED_API_TIMEOUT,
    EMBED_BATCH_SIZE,
    EMPLOYEE_COLLECTION,
    HF_API_KEY,
    HF_EMBED_MODEL,
    MILVUS_TOKEN,
    MILVUS_URI,
    VECTOR_DIM,
)

logger = logging.getLogger(__name__)

HF_API_URL_ROUTER = (
    "https://router.huggingface.co/hf-inference/models/"
    f"{HF_EMBED_MODEL}/pipeline/feature-extraction"
)
HF_API_URL_STANDARD = f"https://api-inference.huggingface.co/models/{HF_EMBED_MODEL}"


@dataclass(frozen=True)
class SearchHit:
    employee_id: str | None
    score: float
    summary: str | None


class EmbeddingService(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class VectorIndex(Protocol):
    async def search(self, vector: list[float], limit: int) -> list[SearchHit]: ...

    async def describe(self) -> dict[str, Any]: ...


def _normalize(vec: list[float]) -> list[float]:
    """Normalize for cosine similarity (Milvus COSINE)."""
    norm = sum(x * x for x in vec) ** 0.5
    if norm == 0:
        norm = 1.0
    return [x / norm for x in vec]


def _to_batch_embeddings(result: Any) -> list[list[float]]:
    if isinstance(result, list) and result and isinstance(result[0], list):
        return result
    return [
        item if isinstance(item, list) else [item]
        for item in (result if isinstance(result, list) else [result])
    ]


class HFEmbeddingClient:
    """
    Hugging Face Inference API embeddings (all-MiniLM-L6-v2, 384 dims).

    Tries the router endpoint first and falls back to the standard endpoint on 403.
    """

    def __init__(
        self,
        api_key: str = HF_API_KEY,
        timeout: float = EMBED_API_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_texts([text])
        if not vectors:
            raise RuntimeError("HF API returned no embedding")
        return vectors[0]

    async def embed_texts(self, texts: list[str], batch_size: int | None = None) -> list[list[float]]:
        """Batch embed texts. Returns normalized vectors in input order."""
        batch_size = batch_size if batch_size is not None else EMBED_BATCH_SIZE
        if not texts:
            return []
        if not self._api_key:
            raise ValueError(
                "HF_API_KEY must be set in .env. Get a token from https://huggingface.co/settings/tokens"
            )

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        all_embeddings: list[list[float]] = []

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            for i in range(0, len(texts), batch_size):
                batch = texts[i : i + batch_size]
                payload = {"inputs": batch, "options": {"wait_for_model": True}}
                response = await self._post_with_fallback(client, payload, headers)
                for vec in _to_batch_embeddings(response.json()):
                    all_embeddings.append(_normalize(vec))

        logger.debug("[vector_store:embed_texts] OUT vectors=%d", len(all_embeddings))
        return all_embeddings

    async def _post_with_fallback(self, client: httpx.AsyncClient, payload: dict, headers: dict) -> httpx.Response:
        api_urls = [HF_API_URL_ROUTER, HF_API_URL_STANDARD]
        response = None
        last_error: str | None = None

        for api_url in api_urls:
            try:
                response = await client.post(api_url, json=payload, headers=headers)
                if response.status_code == 200:
                    break
                if response.status_code == 403 and api_url == HF_API_URL_ROUTER:
                    last_error = response.text
                    continue
                break
            except httpx.HTTPError as e:
                last_error = str(e)
                if api_url == api_urls[-1]:
                    raise
                continue

        if response is None or response.status_code != 200:
            msg = response.text if response is not None else last_error
            if response is not None and response.status_code == 503:
                raise RuntimeError(f"HF model is loading. Retry later. {msg}")
            if response is not None and response.status_code == 401:
                raise ValueError(
                    "Invalid HF API key. Check HF_API_KEY at https://huggingface.co/settings/tokens"
                )
            if response is not None and response.status_code == 403:
                raise ValueError(
                    f"HF token lacks Inference API permission. Create a token with read access. {msg}"
                )
            raise RuntimeError(f"HF API error: {msg}")
        return response


def parse_search_hits(results: Any) -> list[SearchHit]:
    """Milvus returns one list of hits per query vector; each hit has distance/id and an entity with output fields."""
    hits = results[0] if results else []
    out: list[SearchHit] = []
    for h in hits:
        score = float(h.get("distance", h.get("score", 0.0)))
        entity = h.get("entity") if "entity" in h else h
        e = entity or h
        out.append(SearchHit(employee_id=e.get("employee_id"), score=score, summary=e.get("summary")))
    return out


class MilvusEmployeeIndex:
    """Employee summary vectors in a Milvus collection (fields: id, vector, employee_id, summary)."""

    def __init__(
        self,
        uri: str = MILVUS_URI,
        token: str = MILVUS_TOKEN,
        collection_name: str = EMPLOYEE_COLLECTION,
        client: Any = None,
    ) -> None:
        self._uri = uri
        self._token = token
        self.collection_name = collection_name
        self._client = client

    def get_client(self) -> Any:
        """Connect to Milvus Cloud on first use and create the collection if missing."""
        if self._client is not None:
            return self._client
        if not self._uri or not self._token:
            raise ValueError("MILVUS_URI and MILVUS_TOKEN must be set in .env")

        from pymilvus import MilvusClient

        client = MilvusClient(uri=self._uri, token=self._token)
        logger.info("Milvus connection established")

        if not client.has_collection(self.collection_name):
            client.create_collection(
                collection_name=self.collection_name,
                dimension=VECTOR_DIM,
                primary_field_name="id",
                vector_field_name="vector",
                metric_type="COSINE",
                auto_id=False,
            )
            logger.info("Collection %s created (dim=%s)", self.collection_name, VECTOR_DIM)
        self._client = client
        return client

    def _search_sync(self, vector: list[float], limit: int) -> list[SearchHit]:
        client = self.get_client()
        results = client.search(
            collection_name=self.collection_name,
            data=[vector],
            limit=limit,
            output_fields=["employee_id", "summary"],
            search_params={"metric_type": "COSINE"},
        )
        return parse_search_hits(results)

    async def search(self, vector: list[float], limit: int) -> list[SearchHit]:
        """Nearest employee summaries by cosine similarity, best first."""
        hits = await asyncio.to_thread(self._search_sync, vector, limit)
        hits.sort(key=lambda h: -h.score)
        logger.info("[vector_store:search] OUT hits=%d first_scores=%s", len(hits), [round(h.score, 4) for h in hits[:5]])
        return hits

    def _describe_sync(self) -> dict[str, Any]:
        client = self.get_client()
        if not client.has_collection(self.collection_name):
            return {"collection_name": self.collection_name, "exists": False}
        stats = client.get_collection_stats(collection_name=self.collection_name)
        return {"collection_name": self.collection_name, "exists": True, **(stats or {})}

    async def describe(self) -> dict[str, Any]:
        """Collection metadata for diagnostics."""
        return await asyncio.to_thread(self._describe_sync)

    def upsert_summaries(self, rows: list[dict[str, Any]]) -> int:
        """
        Upsert rows of {id, vector, employee_id, summary}, then flush the collection.
        Used by the seeding script.
        """
        if not rows:
            return 0
        client = self.get_client()
        client.upsert(collection_name=self.collection_name, data=rows)
        client.flush(collection_name=self.collection_name)
        logger.info("Embedded and stored %d employee summaries", len(rows))
        return len(rows)

    def drop(self) -> None:
        """Drop the collection; it is recreated empty on next get_client()."""
        client = self.get_client()
        if client.has_collection(self.collection_name):
            client.drop_collection(collection_name=self.collection_name)
            logger.info("Collection %s dropped", self.collection_name)
        self._client = None
