"""Send user attachments to the provider ahead of analysis."""

import time
from typing import Any, List, Optional, Sequence, Tuple

from radar.core.exceptions import MissingCapabilityError
from radar.core.openai_client import OpenAIClient
from radar.schemas.radar import Attachment, UploadReference
from radar.services.capabilities import Uploader, call_capability
from radar.utils.logging import get_logger

LOGGER = get_logger(__name__)

VISION_PROMPT = (
    "Analyze these images in detail. Describe what you see, any text visible, the context, "
    "emotional tone, and anything relevant for psychological power dynamic analysis."
)

VISUAL_CONTEXT_HEADER = "[VISUAL CONTEXT FROM UPLOADED IMAGES]"


def coerce_upload_reference(value: Any) -> UploadReference:
    """Accept either uploader return shape.

    Uploaders return a list of file ids or a mapping carrying ``fileIds``.
    Anything else yields a reference with no ids.
    """
    if isinstance(value, (list, tuple)):
        return UploadReference(file_ids=[str(file_id) for file_id in value])
    if isinstance(value, dict):
        file_ids = value.get("fileIds", value.get("file_ids"))
        if isinstance(file_ids, (list, tuple)):
            return UploadReference(
                file_ids=[str(file_id) for file_id in file_ids],
                vector_store_id=value.get("vectorStoreId") or value.get("vector_store_id"),
            )
    return UploadReference(file_ids=None)


def with_visual_context(text: str, reference: Optional[UploadReference]) -> str:
    """Append the image description, when there is one, to the user text."""
    if reference is None or not reference.visual_context:
        return text
    return f"{text}\n\n{VISUAL_CONTEXT_HEADER}:\n{reference.visual_context}"


class UploadStage:
    """Uploads attachments through a bound uploader or the built-in provider path.

    On the built-in path images and documents part ways: images are
    described by a vision model and documents go to a per-request vector
    store for file search.
    """

    def __init__(
        self,
        client: OpenAIClient,
        uploader: Optional[Uploader] = None,
        vision_model: str = "gpt-4o",
        vision_max_tokens: int = 1000,
    ):
        self.client = client
        self.uploader = uploader
        self.vision_model = vision_model
        self.vision_max_tokens = vision_max_tokens

    async def upload(
        self, files: Sequence[Attachment], *, use_builtin: bool
    ) -> Optional[UploadReference]:
        """Upload ``files`` and return a reference for the invocation stage.

        Args:
            files: Attachments from the request
            use_builtin: Use the built-in vision and vector store path instead
                of the bound uploader

        Returns:
            UploadReference, or None when there are no files

        Raises:
            MissingCapabilityError: If the delegated path has no uploader
            APIClientError: If a provider call fails
        """
        if not files:
            return None

        if use_builtin:
            return await self._upload_builtin(files)

        if self.uploader is None:
            raise MissingCapabilityError("upload capability not bound for delegated analysis")

        returned = await call_capability(self.uploader, [attachment.as_payload() for attachment in files])

        reference = coerce_upload_reference(returned)
        LOGGER.info(
            "Uploaded files through bound uploader",
            extra={"file_count": len(files), "file_ids": reference.file_ids},
        )
        return reference

    async def _upload_builtin(self, files: Sequence[Attachment]) -> UploadReference:
        images = [attachment for attachment in files if attachment.is_image]
        documents = [attachment for attachment in files if not attachment.is_image]
        LOGGER.info(
            "Processing attachments",
            extra={"image_count": len(images), "document_count": len(documents)},
        )

        reference = UploadReference()
        if images:
            reference.visual_context = await self._describe_images(images) or None
        if documents:
            reference.vector_store_id, reference.file_ids = await self._upload_to_vector_store(documents)
        return reference

    async def _describe_images(self, images: Sequence[Attachment]) -> str:
        description = await self.client.create_vision_completion(
            VISION_PROMPT,
            images,
            model=self.vision_model,
            max_tokens=self.vision_max_tokens,
        )
        LOGGER.info(
            "Described images with vision model",
            extra={"image_count": len(images), "description_chars": len(description)},
        )
        return description

    async def _upload_to_vector_store(self, documents: Sequence[Attachment]) -> Tuple[str, List[str]]:
        name = f"query-{int(time.time() * 1000)}"
        store = await self.client.create_vector_store(name)
        store_id = store["id"]

        file_ids: List[str] = await self.client.upload_file_batch(store_id, documents)

        LOGGER.info(
            "Uploaded documents to per-request vector store",
            extra={"vector_store_id": store_id, "file_count": len(file_ids)},
        )
        return store_id, file_ids
