from abc import abstractmethod

import httpx

from shared.clients.HttpClientInterface import HttpClientInterface
from shared.helper.errors import PermanentProviderError, TransientProviderError
from shared.helper.HelperConfig import HelperConfig

# statuses worth retrying: rate limit, request timeout and server side failures
RETRYABLE_STATUS_CODES = {408, 409, 425, 429, 500, 502, 503, 504}


def _parse_retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


class EmbedClientInterface(HttpClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default="text-embedding-3-small")
        self.embed_model_max_chars = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_MODEL_MAX_CHARS", default=8000))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/v1/embeddings")

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str], model: str) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.
            model (str): The embedding model to use.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Response format differs by backend:
        - Ollama /api/embed: {"embeddings": [[...], [...]]}, already ordered
        - OpenAI-compatible: {"data": [{"embedding": [...], "index": 0}]}, needs sorting

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str, model: str | None = None) -> list[list[float]]:
        """Send one embedding request and return the extracted vectors.

        Inputs are truncated to the model's character limit. Failures are
        classified so callers can decide whether retrying makes sense.

        Args:
            texts (list[str] | str): One or more texts to embed.
            model (str | None): Model override; defaults to the configured model.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            TransientProviderError: On timeouts, transport errors, 429 and 5xx responses.
            PermanentProviderError: On any other non-200 response or an unusable response body.
        """
        texts = [texts] if isinstance(texts, str) else texts
        texts = [text[: self.embed_model_max_chars] for text in texts]
        body = self.get_embed_payload(texts, model or self.embed_model)
        try:
            response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)
        except httpx.TransportError as exc:
            raise TransientProviderError(f"Embedding request to {self.get_engine_name()} failed: {exc!r}") from exc

        if response.status_code != 200:
            self.logging.error(
                "Embedding request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            if response.status_code in RETRYABLE_STATUS_CODES:
                raise TransientProviderError(
                    "Embedding request failed with status %d." % response.status_code,
                    status_code=response.status_code,
                    retry_after=_parse_retry_after(response),
                )
            raise PermanentProviderError(
                "Embedding request failed with status %d." % response.status_code,
                status_code=response.status_code,
            )

        try:
            vectors = self.extract_embeddings_from_response(response.json())
        except ValueError as exc:
            raise PermanentProviderError(str(exc)) from exc
        if len(vectors) != len(texts):
            raise PermanentProviderError(
                f"Embedding response contains {len(vectors)} vectors for {len(texts)} inputs."
            )
        return vectors

    async def do_embed_text(self, text: str, model: str | None = None) -> list[float]:
        """Embed a single text.

        Args:
            text (str): The text to embed.
            model (str | None): Model override; defaults to the configured model.

        Returns:
            list[float]: The embedding vector.

        Raises:
            TransientProviderError: See do_embed().
            PermanentProviderError: See do_embed().
        """
        vectors = await self.do_embed(text, model=model)
        return vectors[0]
