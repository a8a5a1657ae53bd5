import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam

from ..command.tools import COMMAND_TOOLS, default_acknowledgment
from ..core.errors import EmptyCommandError
from ..core.events import CommandResult

logger = logging.getLogger("LLM")

PROMPT_PATH = Path(__file__).parent.parent / "prompts" / "system_prompt.txt"


def load_system_prompt(path: Path = PROMPT_PATH) -> str:
    """Load system prompt from file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read().strip()
    except FileNotFoundError:
        logger.error(f"System prompt file not found at {path}")
        raise


class LLM:
    def __init__(
        self,
        api_key: str,
        model: str = "google/gemini-2.5-flash",
        base_url: str = "https://openrouter.ai/api/v1",
        system_prompt: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.system_prompt = system_prompt if system_prompt is not None else load_system_prompt()
        self.tools = tools if tools is not None else COMMAND_TOOLS

        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            default_headers={
                "HTTP-Referer": "http://localhost:3000",
                "X-Title": "Voice Wake",
            },
        )

    async def interpret(
        self,
        transcript: str,
        temperature: float = 0.2,
        max_tokens: int = 256,
    ) -> CommandResult:
        """
        Turn a spoken command into a tool call and a short acknowledgment.

        Only the first tool call is used; the tool is not executed here.
        Raises EmptyCommandError for a blank transcript.
        """
        transcript = transcript.strip()
        if not transcript:
            raise EmptyCommandError("No command was heard")

        messages: List[ChatCompletionMessageParam] = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": transcript},
        ]
        logger.info(f"Interpreting command: {transcript!r}")
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            tools=self.tools,
        )

        message = response.choices[0].message
        tool_name: Optional[str] = None
        args: Dict[str, Any] = {}
        tool_calls = getattr(message, "tool_calls", None)
        if tool_calls:
            first = tool_calls[0]
            tool_name = first.function.name
            args = self._parse_arguments(tool_name, first.function.arguments)
            logger.info(f"Tool call: {tool_name} {args}")
            if len(tool_calls) > 1:
                logger.debug(f"Ignoring {len(tool_calls) - 1} additional tool calls")

        text = (message.content or "").strip()
        if not text:
            text = default_acknowledgment(tool_name)

        return CommandResult(text=text, tool_name=tool_name, args=args, transcript=transcript)

    @staticmethod
    def _parse_arguments(tool_name: str, raw: Optional[str]) -> Dict[str, Any]:
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid arguments for {tool_name}: {e}")
            return {}
        return parsed if isinstance(parsed, dict) else {}

    async def check_connection(self) -> bool:
        try:
            await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "Hello, can you hear me?"}],
                max_tokens=16,
            )
            return True
        except Exception as e:
            logger.error(f"Connection check failed: {e}")
            return False
