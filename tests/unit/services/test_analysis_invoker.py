"""Tests for strategy selection and assistant run polling."""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from radar.core.exceptions import ConfigurationError, RunTerminatedError, RunTimeoutError
from radar.schemas.radar import Attachment
from radar.services.analysis_invoker import AnalysisInvoker
from radar.services.capabilities import ResolvedServices

ASSISTANT_CONTENT = [{"type": "text", "text": {"value": '{"tldr": "ok"}', "annotations": []}}]


@pytest.fixture
def attachment():
    return Attachment(name="notes.pdf", type="application/pdf", data=b"%PDF")


@pytest.fixture
def image():
    return Attachment(name="chat.png", type="image/png", data=b"\x89PNG")


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.ensure_configured = MagicMock()
    client.create_chat_completion = AsyncMock(
        return_value={"choices": [{"message": {"role": "assistant", "content": '{"tldr": "direct"}'}}]}
    )
    client.create_vector_store = AsyncMock(return_value={"id": "vs_req"})
    client.upload_file_batch = AsyncMock(return_value=["file_1"])
    client.create_vision_completion = AsyncMock(return_value="Screenshot of a terse reply.")
    client.create_thread = AsyncMock(return_value={"id": "thread_1"})
    client.update_thread = AsyncMock(return_value={"id": "thread_1"})
    client.create_run = AsyncMock(return_value={"id": "run_1", "status": "queued"})
    client.retrieve_run = AsyncMock(return_value={"id": "run_1", "status": "completed"})
    client.list_messages = AsyncMock(
        return_value={"data": [{"role": "assistant", "content": ASSISTANT_CONTENT}]}
    )
    return client


@pytest.fixture
def assistant_settings(test_settings):
    test_settings.openai_assistant_id = "asst_1"
    test_settings.openai_vector_store_id = "vs_permanent"
    return test_settings


class TestDelegation:
    def test_delegates_with_analyzer_and_no_files(self, mock_client, test_settings, attachment):
        services = ResolvedServices(analyze=lambda *, text, file_ids=None: {})
        invoker = AnalysisInvoker(mock_client, services, test_settings)

        assert invoker.should_delegate([]) is True
        assert invoker.should_delegate([attachment]) is False

    def test_delegates_files_when_uploader_bound(self, mock_client, test_settings, attachment):
        services = ResolvedServices(upload=lambda files: [], analyze=lambda *, text, file_ids=None: {})
        invoker = AnalysisInvoker(mock_client, services, test_settings)

        assert invoker.should_delegate([attachment]) is True

    def test_never_delegates_without_analyzer(self, mock_client, test_settings):
        invoker = AnalysisInvoker(mock_client, ResolvedServices(upload=lambda files: []), test_settings)
        assert invoker.should_delegate([]) is False


@pytest.mark.asyncio
async def test_delegated_returns_analyzer_output_verbatim(mock_client, test_settings, attachment):
    calls = {}

    def upload(files):
        return ["file_a"]

    async def analyze(*, text, file_ids=None):
        calls["text"] = text
        calls["file_ids"] = file_ids
        return {"powerScore": 70}

    invoker = AnalysisInvoker(mock_client, ResolvedServices(upload=upload, analyze=analyze), test_settings)
    result = await invoker.invoke("my situation", [attachment])

    assert result.raw == {"powerScore": 70}
    assert result.strategy == "delegated"
    assert result.builtin is False
    assert result.latency_ms >= 0
    assert calls == {"text": "my situation", "file_ids": ["file_a"]}
    mock_client.create_chat_completion.assert_not_called()


@pytest.mark.asyncio
async def test_delegated_without_files_passes_no_file_ids(mock_client, test_settings):
    analyze = MagicMock(return_value="plain")
    invoker = AnalysisInvoker(mock_client, ResolvedServices(analyze=analyze), test_settings)

    result = await invoker.invoke("text")

    assert result.raw == "plain"
    analyze.assert_called_once_with(text="text", file_ids=None)


@pytest.mark.asyncio
async def test_direct_completion_without_assistant(mock_client, test_settings):
    invoker = AnalysisInvoker(mock_client, ResolvedServices(), test_settings)

    result = await invoker.invoke("what is going on")

    assert result.strategy == "direct"
    assert result.builtin is True
    assert result.raw == '{"tldr": "direct"}'
    kwargs = mock_client.create_chat_completion.await_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"] == [{"role": "user", "content": "what is going on"}]
    mock_client.create_thread.assert_not_called()


@pytest.mark.asyncio
async def test_direct_completion_without_choices_is_empty(mock_client, test_settings):
    mock_client.create_chat_completion.return_value = {"choices": []}
    result = await AnalysisInvoker(mock_client, ResolvedServices(), test_settings).invoke("x")
    assert result.raw == ""


@pytest.mark.asyncio
async def test_files_without_bound_services_use_request_vector_store(mock_client, test_settings, attachment):
    result = await AnalysisInvoker(mock_client, ResolvedServices(), test_settings).invoke("x", [attachment])

    assert result.vector_store_id == "vs_req"
    mock_client.create_vector_store.assert_awaited_once()
    mock_client.upload_file_batch.assert_awaited_once()


@pytest.mark.asyncio
async def test_analyzer_with_files_but_no_uploader_falls_back_to_builtin(mock_client, test_settings, attachment):
    analyze = MagicMock()
    invoker = AnalysisInvoker(mock_client, ResolvedServices(analyze=analyze), test_settings)

    result = await invoker.invoke("x", [attachment])

    assert result.builtin is True
    analyze.assert_not_called()


@pytest.mark.asyncio
async def test_assistant_run_completes(mock_client, assistant_settings, attachment):
    mock_client.retrieve_run.side_effect = [
        {"id": "run_1", "status": "in_progress"},
        {"id": "run_1", "status": "completed"},
    ]
    invoker = AnalysisInvoker(mock_client, ResolvedServices(), assistant_settings)

    with patch("radar.services.analysis_invoker.asyncio.sleep", new=AsyncMock()) as sleep:
        result = await invoker.invoke("x", [attachment])

    assert result.strategy == "assistant"
    assert result.raw == ASSISTANT_CONTENT
    assert result.assistant_id == "asst_1"
    assert result.thread_id == "thread_1"
    assert result.run_id == "run_1"
    assert mock_client.retrieve_run.await_count == 2
    sleep.assert_awaited_with(assistant_settings.run_poll_interval_seconds)

    mock_client.update_thread.assert_awaited_once_with(
        "thread_1", {"file_search": {"vector_store_ids": ["vs_req", "vs_permanent"]}}
    )
    mock_client.create_run.assert_awaited_once_with("thread_1", "asst_1", tool_choice="auto")
    mock_client.list_messages.assert_awaited_once_with("thread_1", order="desc", limit=1)


@pytest.mark.asyncio
async def test_assistant_without_vector_stores_skips_thread_update(mock_client, test_settings):
    test_settings.openai_assistant_id = "asst_1"
    invoker = AnalysisInvoker(mock_client, ResolvedServices(), test_settings)

    with patch("radar.services.analysis_invoker.asyncio.sleep", new=AsyncMock()):
        await invoker.invoke("x")

    mock_client.update_thread.assert_not_called()


@pytest.mark.asyncio
async def test_assistant_with_no_messages_returns_empty_content(mock_client, assistant_settings):
    mock_client.list_messages.return_value = {"data": []}

    with patch("radar.services.analysis_invoker.asyncio.sleep", new=AsyncMock()):
        result = await AnalysisInvoker(mock_client, ResolvedServices(), assistant_settings).invoke("x")

    assert result.raw == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["failed", "cancelled", "expired", "incomplete"])
async def test_abnormal_run_status_raises(mock_client, assistant_settings, status):
    mock_client.retrieve_run.return_value = {"id": "run_1", "status": status}
    invoker = AnalysisInvoker(mock_client, ResolvedServices(), assistant_settings)

    with patch("radar.services.analysis_invoker.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(RunTerminatedError) as exc_info:
            await invoker.invoke("x")

    assert exc_info.value.status == status
    mock_client.list_messages.assert_not_called()


@pytest.mark.asyncio
async def test_run_exceeding_deadline_times_out(mock_client, assistant_settings):
    assistant_settings.run_poll_interval_seconds = 0.01
    assistant_settings.run_poll_timeout_seconds = 0.05
    mock_client.retrieve_run.return_value = {"id": "run_1", "status": "in_progress"}
    invoker = AnalysisInvoker(mock_client, ResolvedServices(), assistant_settings)

    with pytest.raises(RunTimeoutError) as exc_info:
        await invoker.invoke("x")

    assert exc_info.value.status == "timeout"
    assert exc_info.value.last_status == "in_progress"
    assert isinstance(exc_info.value, RunTerminatedError)


@pytest.mark.asyncio
async def test_missing_api_key_raises_before_any_call(mock_client, test_settings):
    mock_client.ensure_configured.side_effect = ConfigurationError("Missing OpenAI API key")

    with pytest.raises(ConfigurationError):
        await AnalysisInvoker(mock_client, ResolvedServices(), test_settings).invoke("x")

    mock_client.create_chat_completion.assert_not_called()


@pytest.mark.asyncio
async def test_direct_completion_with_image_adds_visual_context(mock_client, test_settings, image):
    result = await AnalysisInvoker(mock_client, ResolvedServices(), test_settings).invoke("Is this rude?", [image])

    assert result.strategy == "direct"
    assert result.vector_store_id is None
    content = mock_client.create_chat_completion.await_args.kwargs["messages"][0]["content"]
    assert content == "Is this rude?\n\n[VISUAL CONTEXT FROM UPLOADED IMAGES]:\nScreenshot of a terse reply."
    assert mock_client.create_vision_completion.await_args.kwargs["model"] == test_settings.openai_vision_model
    mock_client.create_vector_store.assert_not_called()


@pytest.mark.asyncio
async def test_assistant_with_image_and_document(mock_client, assistant_settings, image, attachment):
    invoker = AnalysisInvoker(mock_client, ResolvedServices(), assistant_settings)

    with patch("radar.services.analysis_invoker.asyncio.sleep", new=AsyncMock()):
        result = await invoker.invoke("Read these", [image, attachment])

    messages = mock_client.create_thread.await_args.kwargs["messages"]
    assert messages[0]["content"].startswith("Read these\n\n[VISUAL CONTEXT FROM UPLOADED IMAGES]:\n")
    mock_client.upload_file_batch.assert_awaited_once_with("vs_req", [attachment])
    assert result.vector_store_id == "vs_req"


@pytest.mark.asyncio
async def test_delegated_path_passes_images_to_uploader_unchanged(mock_client, test_settings, image):
    received = {}

    def upload(files):
        received["files"] = files
        return ["file_img"]

    services = ResolvedServices(upload=upload, analyze=lambda *, text, file_ids=None: {"tldr": text})
    result = await AnalysisInvoker(mock_client, services, test_settings).invoke("x", [image])

    assert result.raw == {"tldr": "x"}
    assert received["files"][0]["name"] == "chat.png"
    mock_client.create_vision_completion.assert_not_called()


@pytest.mark.asyncio
async def test_sync_analyzers_do_not_block_concurrent_requests(mock_client, test_settings):
    def slow_analyzer(*, text, file_ids=None):
        time.sleep(0.3)
        return {"tldr": text}

    invoker = AnalysisInvoker(mock_client, ResolvedServices(analyze=slow_analyzer), test_settings)

    started = time.monotonic()
    results = await asyncio.gather(*(invoker.invoke(f"request {i}") for i in range(3)))
    elapsed = time.monotonic() - started

    assert [result.raw["tldr"] for result in results] == ["request 0", "request 1", "request 2"]
    assert elapsed < 0.75
