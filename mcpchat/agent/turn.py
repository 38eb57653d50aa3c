import asyncio
import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, Awaitable, Dict, Iterable, List, Mapping, Optional, TypeVar

from openai import OpenAIError

from ..errors import BudgetExceeded, InvocationError, TurnTimeout
from ..schemas import ServerDescriptor
from ..tools import AgentTool, AnnotationChannel, Connector, ToolExecutor, ToolNamespaceAggregator, connect
from .settings import (
    CONNECT_TIMEOUT,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    MAX_DURATION,
    MAX_STEPS,
)
from .utils import parse_tool_arguments

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConversationTurn:
    """One chat request: open tool sessions, loop model <-> tools, stream events, tear down.

    ``stream()`` yields dict events (``text``, ``reasoning``, ``tool_call``,
    ``annotation``, ``tool_result``, ``error``) and always ends with exactly one
    ``finish`` event, emitted after every session and the annotation channel
    have been closed.
    """

    def __init__(
        self,
        messages: Iterable[Dict[str, Any]],
        *,
        servers: Mapping[str, ServerDescriptor],
        builtins: Iterable[AgentTool],
        model_client: Any,
        model: str = DEFAULT_MODEL,
        system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT,
        max_steps: int = MAX_STEPS,
        max_duration: float = MAX_DURATION,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        connector: Connector = connect,
        connect_timeout: Optional[float] = CONNECT_TIMEOUT,
    ) -> None:
        self.messages: List[Any] = list(messages)
        if system_prompt and not (self.messages and self.messages[0].get("role") == "system"):
            self.messages.insert(0, {"role": "system", "content": system_prompt})
        self.servers = dict(servers)
        self.builtins = list(builtins)
        self.model_client = model_client
        self.model = model
        self.max_steps = max_steps
        self.max_duration = max_duration
        self.max_output_tokens = max_output_tokens
        self.aggregator = ToolNamespaceAggregator(connector, connect_timeout=connect_timeout)
        self.channel = AnnotationChannel()
        self.steps = 0
        self.text = ""
        self.finish_reason: Optional[str] = None

    async def _within(self, deadline: float, awaitable: Awaitable[T], what: str) -> T:
        remaining = max(deadline - asyncio.get_running_loop().time(), 0)
        try:
            return await asyncio.wait_for(awaitable, remaining)
        except asyncio.TimeoutError as exc:
            raise TurnTimeout(f"{what} ran past the {self.max_duration}s turn budget") from exc

    async def stream(self) -> AsyncGenerator[Dict[str, Any], None]:
        deadline = asyncio.get_running_loop().time() + self.max_duration
        reason = "error"
        async with self.aggregator, self.channel:
            try:
                async with aclosing(self._generate(deadline)) as events:
                    async for event in events:
                        yield event
                reason = "stop"
            except BudgetExceeded as exc:
                logger.warning("Turn stopped: %s", exc)
                reason = "budget"
            except TurnTimeout as exc:
                logger.warning("Turn stopped: %s", exc)
                reason = "timeout"
            except OpenAIError as exc:
                logger.exception("Model call failed")
                yield {"type": "error", "error": str(exc)}
            except Exception as exc:
                logger.exception("Turn failed")
                yield {"type": "error", "error": f"{type(exc).__name__}: {exc}"}
            for annotation in self.channel.drain():
                yield {"type": "annotation", "annotation": annotation}
        self.finish_reason = reason
        yield {"type": "finish", "finishReason": reason, "steps": self.steps}

    async def _generate(self, deadline: float) -> AsyncGenerator[Dict[str, Any], None]:
        namespace = await self._within(
            deadline, self.aggregator.build(self.servers, self.builtins), "Connecting to MCP servers"
        )
        executor = ToolExecutor(namespace, self.channel)
        tools_param = namespace.list_for_responses() or None

        while self.steps < self.max_steps:
            self.steps += 1
            logger.debug("Step %d/%d: model=%s tools=%d", self.steps, self.max_steps, self.model, len(namespace))
            response = await self._within(
                deadline,
                self.model_client.responses.create(
                    model=self.model,
                    input=self.messages,
                    tools=tools_param,
                    max_output_tokens=self.max_output_tokens,
                ),
                "Model call",
            )
            self.messages.extend(response.output)

            called_tools = False
            for item in response.output:
                if item.type == "reasoning":
                    yield {"type": "reasoning", "reasoning": item.model_dump(exclude_none=True)}
                    continue
                if item.type != "function_call":
                    continue

                call_id, name = str(item.call_id), str(item.name)
                argument_error: Optional[str] = None
                try:
                    args = parse_tool_arguments(name, item.arguments)
                except InvocationError as exc:
                    args, argument_error = {}, str(exc)
                called_tools = True
                yield {
                    "type": "tool_call",
                    "toolCallId": call_id,
                    "toolName": name,
                    "args": item.arguments if argument_error else args,
                }
                stream = executor.stream(call_id, name, args, deadline=deadline, argument_error=argument_error)
                async with aclosing(stream) as events:
                    async for event in events:
                        if event["type"] != "tool_result":
                            yield event
                            continue
                        result = event["result"]
                        self.messages.append(
                            {"type": "function_call_output", "call_id": call_id, "output": result.to_model_output()}
                        )
                        yield {"type": "tool_result", **result.to_event()}

            text = response.output_text or ""
            if text:
                self.text += text
                yield {"type": "text", "content": text}
            if not called_tools:
                return

        raise BudgetExceeded(f"no final answer after {self.max_steps} model/tool round-trips")
