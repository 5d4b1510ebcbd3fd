"""OpenAI REST client for chat completions, files, vector stores and assistants."""

from typing import Any, Dict, List, Optional, Sequence

from radar.core.base_llm_client import BaseLLMClient
from radar.core.exceptions import ConfigurationError
from radar.schemas.radar import Attachment

ASSISTANTS_BETA_HEADER = {"OpenAI-Beta": "assistants=v2"}


class OpenAIClient(BaseLLMClient):
    """Thin async wrapper over the OpenAI endpoints the pipeline uses.

    Every method returns the decoded JSON body. Retries, backoff and error
    mapping come from ``BaseLLMClient``.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        organization: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: int = 2,
    ):
        """Initialize the OpenAI client.

        Args:
            api_key: OpenAI API key; may be empty until first use
            base_url: API root, without trailing slash
            organization: Optional organization id sent as ``OpenAI-Organization``
            model: Model for chat completions
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per call
            retry_delay: Base delay for exponential backoff
        """
        default_headers = {"OpenAI-Organization": organization} if organization else None
        super().__init__(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            default_headers=default_headers,
        )
        self.organization = organization
        self.model = model

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when no API key is available."""
        if not self.is_configured:
            raise ConfigurationError("Missing OpenAI API key (OPENAI_API_KEY)")

    # Chat

    async def create_chat_completion(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        **options: Any,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": model or self.model, "messages": messages}
        payload.update(options)
        return await self.call_api("/chat/completions", payload=payload)

    async def create_vision_completion(
        self,
        prompt: str,
        images: Sequence[Attachment],
        model: str = "gpt-4o",
        detail: str = "high",
        max_tokens: int = 1000,
    ) -> str:
        """Describe images with a vision-capable chat model.

        The assistants file search cannot read images, so they go through
        chat completions as inline data URLs instead.

        Args:
            prompt: Instruction sent ahead of the images
            images: Image attachments
            model: Vision-capable model
            detail: Image detail level (``low``, ``high`` or ``auto``)
            max_tokens: Completion length limit

        Returns:
            The model's description, or "" when it returned no content
        """
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for image in images:
            content.append(
                {"type": "image_url", "image_url": {"url": image.as_data_url(), "detail": detail}}
            )

        response = await self.create_chat_completion(
            messages=[{"role": "user", "content": content}],
            model=model,
            max_tokens=max_tokens,
        )
        choices = response.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""

    # Files and vector stores

    async def upload_file(self, attachment: Attachment, purpose: str = "assistants") -> Dict[str, Any]:
        """Upload one file as multipart form data."""
        return await self.call_api(
            "/files",
            payload={"purpose": purpose},
            files=[("file", (attachment.name, attachment.data, attachment.type or "application/octet-stream"))],
        )

    async def create_vector_store(self, name: str) -> Dict[str, Any]:
        return await self.call_api(
            "/vector_stores", payload={"name": name}, headers=ASSISTANTS_BETA_HEADER
        )

    async def create_file_batch(self, vector_store_id: str, file_ids: Sequence[str]) -> Dict[str, Any]:
        return await self.call_api(
            f"/vector_stores/{vector_store_id}/file_batches",
            payload={"file_ids": list(file_ids)},
            headers=ASSISTANTS_BETA_HEADER,
        )

    async def upload_file_batch(
        self, vector_store_id: str, attachments: Sequence[Attachment]
    ) -> List[str]:
        """Upload files and attach them to a vector store in one batch.

        Args:
            vector_store_id: Target vector store
            attachments: Files to upload

        Returns:
            Provider file ids, in input order
        """
        file_ids = []
        for attachment in attachments:
            uploaded = await self.upload_file(attachment)
            file_ids.append(uploaded["id"])

        await self.create_file_batch(vector_store_id, file_ids)
        return file_ids

    # Assistants

    async def create_thread(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        return await self.call_api(
            "/threads", payload={"messages": messages}, headers=ASSISTANTS_BETA_HEADER
        )

    async def update_thread(self, thread_id: str, tool_resources: Dict[str, Any]) -> Dict[str, Any]:
        return await self.call_api(
            f"/threads/{thread_id}",
            payload={"tool_resources": tool_resources},
            headers=ASSISTANTS_BETA_HEADER,
        )

    async def create_run(
        self, thread_id: str, assistant_id: str, tool_choice: str = "auto"
    ) -> Dict[str, Any]:
        return await self.call_api(
            f"/threads/{thread_id}/runs",
            payload={"assistant_id": assistant_id, "tool_choice": tool_choice},
            headers=ASSISTANTS_BETA_HEADER,
        )

    async def retrieve_run(self, thread_id: str, run_id: str) -> Dict[str, Any]:
        return await self.call_api(
            f"/threads/{thread_id}/runs/{run_id}", method="GET", headers=ASSISTANTS_BETA_HEADER
        )

    async def list_messages(
        self, thread_id: str, order: str = "desc", limit: int = 1
    ) -> Dict[str, Any]:
        return await self.call_api(
            f"/threads/{thread_id}/messages",
            method="GET",
            params={"order": order, "limit": limit},
            headers=ASSISTANTS_BETA_HEADER,
        )
