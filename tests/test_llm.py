import pytest
from unittest.mock import AsyncMock, Mock, patch

from voice_wake.command.tools import COMMAND_TOOLS, FALLBACK_ACKNOWLEDGMENT
from voice_wake.core.errors import EmptyCommandError
from voice_wake.llm.llm import LLM, load_system_prompt


def make_response(content=None, tool_calls=None):
    message = Mock()
    message.role = "assistant"
    message.content = content
    message.tool_calls = tool_calls
    response = Mock()
    response.choices = [Mock(message=message, finish_reason="stop")]
    return response


def tool_call(name, arguments="{}"):
    call = Mock()
    call.function.name = name
    call.function.arguments = arguments
    return call


class TestLLM:
    @pytest.fixture
    def llm(self):
        return LLM(api_key="test_key", model="test/model", base_url="https://test.api.com", system_prompt="Be brief.")

    def test_initialization(self, llm):
        assert llm.api_key == "test_key"
        assert llm.model == "test/model"
        assert llm.base_url == "https://test.api.com"
        assert llm.system_prompt == "Be brief."
        assert llm.tools is COMMAND_TOOLS
        assert llm.client.api_key == "test_key"

    def test_default_initialization(self):
        llm = LLM(api_key="test_key")
        assert llm.model == "google/gemini-2.5-flash"
        assert llm.base_url == "https://openrouter.ai/api/v1"
        assert "Heidi" in llm.system_prompt

    def test_load_system_prompt_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_system_prompt(tmp_path / "missing.txt")

    @pytest.mark.asyncio
    async def test_interpret_tool_call(self, llm):
        with patch.object(llm.client.chat.completions, 'create', new_callable=AsyncMock) as mock_create:
            mock_create.return_value = make_response(
                content="Opening that for you.",
                tool_calls=[tool_call("open_url", '{"url": "https://example.com"}')],
            )

            result = await llm.interpret("  open example dot com ")

        assert result.tool_name == "open_url"
        assert result.args == {"url": "https://example.com"}
        assert result.text == "Opening that for you."
        assert result.transcript == "open example dot com"

        kwargs = mock_create.call_args.kwargs
        assert kwargs["model"] == "test/model"
        assert kwargs["tools"] is COMMAND_TOOLS
        assert kwargs["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "open example dot com"},
        ]

    @pytest.mark.asyncio
    async def test_interpret_uses_default_acknowledgment(self, llm):
        with patch.object(llm.client.chat.completions, 'create', new_callable=AsyncMock) as mock_create:
            mock_create.return_value = make_response(content=None, tool_calls=[tool_call("start_recording")])
            result = await llm.interpret("start recording")

        assert result.tool_name == "start_recording"
        assert result.text == "Sure, starting the recording now."
        assert result.args == {}

    @pytest.mark.asyncio
    async def test_interpret_without_tool_call(self, llm):
        with patch.object(llm.client.chat.completions, 'create', new_callable=AsyncMock) as mock_create:
            mock_create.return_value = make_response(content="   ")
            result = await llm.interpret("what's the weather")

        assert result.tool_name is None
        assert result.text == FALLBACK_ACKNOWLEDGMENT

    @pytest.mark.asyncio
    async def test_interpret_uses_first_tool_call_only(self, llm):
        with patch.object(llm.client.chat.completions, 'create', new_callable=AsyncMock) as mock_create:
            mock_create.return_value = make_response(
                content="Done.",
                tool_calls=[tool_call("take_screenshot"), tool_call("stop_recording")],
            )
            result = await llm.interpret("take a screenshot and stop")

        assert result.tool_name == "take_screenshot"

    @pytest.mark.asyncio
    async def test_interpret_invalid_arguments(self, llm):
        with patch.object(llm.client.chat.completions, 'create', new_callable=AsyncMock) as mock_create:
            mock_create.return_value = make_response(tool_calls=[tool_call("type_text", "{not json")])
            result = await llm.interpret("type hello")

        assert result.tool_name == "type_text"
        assert result.args == {}
        assert result.text == "Typing that now."

    @pytest.mark.asyncio
    async def test_interpret_empty_transcript(self, llm):
        with patch.object(llm.client.chat.completions, 'create', new_callable=AsyncMock) as mock_create:
            with pytest.raises(EmptyCommandError):
                await llm.interpret("   ")
        mock_create.assert_not_called()

    @pytest.mark.asyncio
    async def test_interpret_propagates_api_errors(self, llm):
        with patch.object(llm.client.chat.completions, 'create', new_callable=AsyncMock) as mock_create:
            mock_create.side_effect = RuntimeError("rate limited")
            with pytest.raises(RuntimeError):
                await llm.interpret("stop recording")

    @pytest.mark.asyncio
    async def test_check_connection(self, llm):
        with patch.object(llm.client.chat.completions, 'create', new_callable=AsyncMock) as mock_create:
            mock_create.return_value = make_response(content="Yes")
            assert await llm.check_connection() is True

            mock_create.side_effect = Exception("unreachable")
            assert await llm.check_connection() is False
