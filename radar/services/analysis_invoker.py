"""Run one analysis against a bound analyzer or the built-in OpenAI strategies."""

import asyncio
import time
from typing import Any, Dict, List, Optional, Sequence

from radar.config import Settings
from radar.core.exceptions import RunTerminatedError, RunTimeoutError
from radar.core.openai_client import OpenAIClient
from radar.schemas.radar import Attachment, InvocationResult, UploadReference
from radar.services.capabilities import ResolvedServices, call_capability
from radar.services.upload_stage import UploadStage, with_visual_context
from radar.utils.logging import get_logger

LOGGER = get_logger(__name__)

RUN_PENDING_STATUSES = frozenset({"queued", "in_progress", "requires_action"})


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class AnalysisInvoker:
    """Chooses an invocation strategy and returns the raw provider output.

    Strategy selection:

    - delegated: an analyzer is bound and either there are no files or an
      uploader is bound too. Output is returned verbatim.
    - assistant: built-in path with an assistant id configured. Creates a
      thread, attaches vector stores, starts a run and polls it.
    - direct: built-in path without an assistant id. One chat completion.

    On the built-in path a description of any image attachments is appended
    to the user text before either strategy runs.
    """

    def __init__(
        self,
        client: OpenAIClient,
        services: ResolvedServices,
        settings: Settings,
        upload_stage: Optional[UploadStage] = None,
    ):
        """Initialize the invoker.

        Args:
            client: Shared OpenAI client
            services: Capabilities resolved at startup
            settings: Application settings
            upload_stage: Upload stage; built from ``client`` and the bound
                uploader when omitted
        """
        self.client = client
        self.services = services
        self.settings = settings
        self.upload_stage = upload_stage or UploadStage(
            client,
            services.upload,
            vision_model=settings.openai_vision_model,
            vision_max_tokens=settings.vision_max_tokens,
        )
        self.logger = LOGGER

    def should_delegate(self, files: Sequence[Attachment]) -> bool:
        return self.services.analyze is not None and (
            not files or self.services.upload is not None
        )

    async def invoke(self, text: str, files: Sequence[Attachment] = ()) -> InvocationResult:
        """Run the analysis and return raw output with timing.

        Args:
            text: User input text
            files: Attachments, possibly empty

        Returns:
            InvocationResult

        Raises:
            ConfigurationError: If no API key is configured
            MissingCapabilityError: If delegation needs an unbound uploader
            RunTerminatedError: If an assistant run ends abnormally
            RunTimeoutError: If an assistant run exceeds the poll deadline
            APIClientError: If a provider call fails
        """
        self.client.ensure_configured()
        files = list(files)

        started = time.monotonic()

        if self.should_delegate(files):
            reference = await self.upload_stage.upload(files, use_builtin=False)
            raw = await self._call_analyzer(text, reference)
            self.logger.info(
                "Delegated analysis finished",
                extra={"latency_ms": _elapsed_ms(started), "file_count": len(files)},
            )
            return InvocationResult(
                raw=raw,
                strategy="delegated",
                latency_ms=_elapsed_ms(started),
                builtin=False,
                vector_store_id=reference.vector_store_id if reference else None,
            )

        reference = await self.upload_stage.upload(files, use_builtin=True)
        request_store = reference.vector_store_id if reference else None
        prompt = with_visual_context(text, reference)

        if self.settings.openai_assistant_id:
            result = await self._run_assistant(prompt, request_store)
        else:
            raw = await self._run_direct_completion(prompt)
            result = InvocationResult(raw=raw, strategy="direct", latency_ms=0, builtin=True)

        result.latency_ms = _elapsed_ms(started)
        result.vector_store_id = request_store
        self.logger.info(
            "Built-in analysis finished",
            extra={"strategy": result.strategy, "latency_ms": result.latency_ms},
        )
        return result

    async def _call_analyzer(self, text: str, reference: Optional[UploadReference]) -> Any:
        file_ids = reference.file_ids if reference else None
        return await call_capability(self.services.analyze, text=text, file_ids=file_ids)

    async def _run_direct_completion(self, text: str) -> str:
        response = await self.client.create_chat_completion(
            messages=[{"role": "user", "content": text}],
            model=self.settings.openai_model,
        )
        choices = response.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return message.get("content") or ""

    async def _run_assistant(self, text: str, request_store: Optional[str]) -> InvocationResult:
        assistant_id = self.settings.openai_assistant_id

        thread = await self.client.create_thread(
            messages=[{"role": "user", "content": text}]
        )
        thread_id = thread["id"]

        store_ids = [
            store_id
            for store_id in (request_store, self.settings.openai_vector_store_id)
            if store_id
        ]
        if store_ids:
            await self.client.update_thread(
                thread_id, {"file_search": {"vector_store_ids": store_ids}}
            )

        run = await self.client.create_run(thread_id, assistant_id, tool_choice="auto")
        run_id = run["id"]
        self.logger.info(
            "Assistant run started",
            extra={"thread_id": thread_id, "run_id": run_id, "vector_store_ids": store_ids},
        )

        await self._wait_for_run(thread_id, run_id, run.get("status", "queued"))

        messages = await self.client.list_messages(thread_id, order="desc", limit=1)
        data: List[Dict[str, Any]] = messages.get("data") or []
        content = data[0].get("content") if data else []

        return InvocationResult(
            raw=content if content is not None else [],
            strategy="assistant",
            latency_ms=0,
            builtin=True,
            assistant_id=assistant_id,
            thread_id=thread_id,
            run_id=run_id,
        )

    async def _wait_for_run(self, thread_id: str, run_id: str, status: str) -> None:
        """Poll until the run leaves the pending states.

        Raises:
            RunTerminatedError: On a failed, cancelled, expired or unknown status
            RunTimeoutError: When ``run_poll_timeout_seconds`` elapses first
        """
        interval = self.settings.run_poll_interval_seconds
        timeout = self.settings.run_poll_timeout_seconds
        started = time.monotonic()

        while status in RUN_PENDING_STATUSES:
            waited = time.monotonic() - started
            if timeout and waited >= timeout:
                raise RunTimeoutError(status, waited)

            await asyncio.sleep(interval)
            run = await self.client.retrieve_run(thread_id, run_id)
            status = run.get("status", "")
            self.logger.debug("Assistant run status", extra={"run_id": run_id, "status": status})

        if status != "completed":
            self.logger.warning(
                "Assistant run ended abnormally",
                extra={"run_id": run_id, "status": status},
            )
            raise RunTerminatedError(status or "unknown")
