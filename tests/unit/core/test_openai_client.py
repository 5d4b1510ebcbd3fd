"""Tests for the OpenAI endpoint wrappers."""

from unittest.mock import AsyncMock

import pytest

from radar.core.exceptions import ConfigurationError
from radar.core.openai_client import ASSISTANTS_BETA_HEADER, OpenAIClient
from radar.schemas.radar import Attachment


@pytest.fixture
def client():
    openai = OpenAIClient(api_key="sk-test", organization="org-1")
    openai.call_api = AsyncMock(return_value={"id": "obj_1"})
    return openai


def test_organization_header_sent_with_every_request():
    assert OpenAIClient(api_key="k", organization="org-1").default_headers == {"OpenAI-Organization": "org-1"}
    assert OpenAIClient(api_key="k").default_headers == {}


def test_missing_key_is_a_configuration_error():
    unconfigured = OpenAIClient(api_key="")

    assert unconfigured.is_configured is False
    with pytest.raises(ConfigurationError):
        unconfigured.ensure_configured()


@pytest.mark.asyncio
async def test_chat_completion_uses_default_model(client):
    await client.create_chat_completion([{"role": "user", "content": "hi"}])

    client.call_api.assert_awaited_once_with(
        "/chat/completions",
        payload={"model": "gpt-4o-mini", "messages": [{"role": "user", "content": "hi"}]},
    )


@pytest.mark.asyncio
async def test_vision_completion_sends_images_as_data_urls(client):
    client.call_api.return_value = {"choices": [{"message": {"content": "Two people arguing."}}]}
    images = [
        Attachment(name="a.png", type="image/png", data=b"\x89PNG"),
        Attachment(name="b.jpg", type="application/octet-stream", data=b"\xff\xd8"),
    ]

    description = await client.create_vision_completion("Describe", images, max_tokens=300)

    assert description == "Two people arguing."
    payload = client.call_api.await_args.kwargs["payload"]
    assert payload["model"] == "gpt-4o"
    assert payload["max_tokens"] == 300
    content = payload["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "Describe"}
    assert content[1] == {"type": "image_url", "image_url": {"url": "data:image/png;base64,iVBORw==", "detail": "high"}}
    assert content[2]["image_url"]["url"] == "data:image/jpeg;base64,/9g="


@pytest.mark.asyncio
async def test_vision_completion_without_choices_is_empty(client):
    client.call_api.return_value = {"choices": []}

    assert await client.create_vision_completion("Describe", [Attachment("a.png", "image/png", b"x")]) == ""


@pytest.mark.asyncio
async def test_upload_file_batch_attaches_all_files(client):
    client.call_api.side_effect = [{"id": "file_a"}, {"id": "file_b"}, {"id": "batch_1"}]
    attachments = [
        Attachment(name="a.pdf", type="application/pdf", data=b"a"),
        Attachment(name="b.bin", type="", data=b"b"),
    ]

    file_ids = await client.upload_file_batch("vs_1", attachments)

    assert file_ids == ["file_a", "file_b"]
    first_upload = client.call_api.await_args_list[0]
    assert first_upload.args == ("/files",)
    assert first_upload.kwargs["payload"] == {"purpose": "assistants"}
    assert first_upload.kwargs["files"] == [("file", ("a.pdf", b"a", "application/pdf"))]
    second_upload = client.call_api.await_args_list[1]
    assert second_upload.kwargs["files"] == [("file", ("b.bin", b"b", "application/octet-stream"))]
    batch = client.call_api.await_args_list[2]
    assert batch.args == ("/vector_stores/vs_1/file_batches",)
    assert batch.kwargs["payload"] == {"file_ids": ["file_a", "file_b"]}


@pytest.mark.asyncio
async def test_assistant_calls_send_beta_header(client):
    await client.create_thread([{"role": "user", "content": "hi"}])
    await client.update_thread("thread_1", {"file_search": {"vector_store_ids": ["vs_1"]}})
    await client.create_run("thread_1", "asst_1")
    await client.retrieve_run("thread_1", "run_1")
    await client.list_messages("thread_1")

    for call in client.call_api.await_args_list:
        assert call.kwargs["headers"] == ASSISTANTS_BETA_HEADER

    run_call = client.call_api.await_args_list[2]
    assert run_call.kwargs["payload"] == {"assistant_id": "asst_1", "tool_choice": "auto"}

    retrieve_call = client.call_api.await_args_list[3]
    assert retrieve_call.args == ("/threads/thread_1/runs/run_1",)
    assert retrieve_call.kwargs["method"] == "GET"

    messages_call = client.call_api.await_args_list[4]
    assert messages_call.kwargs["params"] == {"order": "desc", "limit": 1}


@pytest.mark.asyncio
async def test_update_thread_sets_tool_resources(client):
    await client.update_thread("thread_1", {"file_search": {"vector_store_ids": ["vs_1", "vs_2"]}})

    assert client.call_api.await_args.kwargs["payload"] == {
        "tool_resources": {"file_search": {"vector_store_ids": ["vs_1", "vs_2"]}}
    }
