"""Tool execution bridge.

Runs tool calls issued by the model against the turn's namespace, turning
every failure into a structured result, and publishes ``tool-status``
annotations for slow tools on a side channel the turn streams to the client.
"""

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from ..errors import InvocationError, TurnTimeout
from .registry import ToolNamespace

logger = logging.getLogger(__name__)

STATUS_IN_PROGRESS = "in-progress"
STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"


class CallState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class ToolResult:
    call_id: str
    name: str
    ok: bool
    output: Optional[str] = None
    error: Optional[str] = None

    def to_model_output(self) -> str:
        if self.ok:
            return self.output or ""
        return json.dumps({"error": self.error})

    def to_event(self) -> Dict[str, Any]:
        return {
            "toolCallId": self.call_id,
            "toolName": self.name,
            "result": self.output if self.ok else {"error": self.error},
            "isError": not self.ok,
        }


@dataclass
class ToolCall:
    call_id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    state: CallState = CallState.PENDING
    result: Optional[ToolResult] = None

    def start(self) -> None:
        if self.state is not CallState.PENDING:
            raise RuntimeError(f"Tool call {self.call_id} already started")
        self.state = CallState.RUNNING

    def finish(self, result: ToolResult) -> None:
        if self.state is not CallState.RUNNING:
            raise RuntimeError(f"Tool call {self.call_id} is {self.state.value}, cannot record a result")
        self.result = result
        self.state = CallState.SUCCEEDED if result.ok else CallState.FAILED


class AnnotationChannel:
    """Out-of-band annotations for one turn; closed when the turn ends."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Dict[str, Any]] = asyncio.Queue()
        self._closed = False

    async def __aenter__(self) -> "AnnotationChannel":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, annotation: Dict[str, Any]) -> None:
        if self._closed:
            raise RuntimeError("annotation channel is closed")
        self._queue.put_nowait(annotation)

    async def get(self) -> Dict[str, Any]:
        return await self._queue.get()

    def drain(self) -> List[Dict[str, Any]]:
        pending: List[Dict[str, Any]] = []
        while not self._queue.empty():
            pending.append(self._queue.get_nowait())
        return pending

    def close(self) -> None:
        if not self._closed and not self._queue.empty():
            logger.debug("Closing annotation channel with %d undelivered annotations", self._queue.qsize())
        self._closed = True


class ToolExecutor:
    def __init__(self, namespace: ToolNamespace, channel: AnnotationChannel) -> None:
        self.namespace = namespace
        self.channel = channel
        self.calls: Dict[str, ToolCall] = {}

    def _annotate(self, call: ToolCall, status: str) -> None:
        self.channel.append({"type": "tool-status", "toolCallId": call.call_id, "status": status})

    async def execute(
        self,
        call_id: str,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        *,
        argument_error: Optional[str] = None,
    ) -> ToolResult:
        if call_id in self.calls:
            logger.warning("Ignoring repeated tool call id %s for %s", call_id, name)
            return ToolResult(call_id, name, ok=False, error=f"Tool call id {call_id} was already used in this turn")

        call = ToolCall(call_id, name, dict(arguments or {}))
        self.calls[call_id] = call
        call.start()

        if argument_error is not None:
            result = ToolResult(call_id, name, ok=False, error=argument_error)
            call.finish(result)
            return result
        if name not in self.namespace:
            result = ToolResult(call_id, name, ok=False, error=f"Unknown tool: {name}")
            call.finish(result)
            return result

        tool = self.namespace.get(name)
        if tool.reports_progress:
            self._annotate(call, STATUS_IN_PROGRESS)
        try:
            output = await tool.invoke(call.arguments)
        except InvocationError as exc:
            logger.info("Tool %s (%s) failed: %s", name, tool.source, exc)
            result = ToolResult(call_id, name, ok=False, error=str(exc))
        except Exception as exc:
            logger.exception("Tool %s (%s) raised", name, tool.source)
            result = ToolResult(call_id, name, ok=False, error=f"{type(exc).__name__}: {exc}")
        else:
            result = ToolResult(call_id, name, ok=True, output=output)
        if tool.reports_progress:
            self._annotate(call, STATUS_SUCCESS if result.ok else STATUS_FAILURE)
        call.finish(result)
        return result

    async def stream(
        self,
        call_id: str,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        *,
        deadline: Optional[float] = None,
        argument_error: Optional[str] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Run one call, yielding annotation events as they happen and the result last."""
        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(self.execute(call_id, name, arguments, argument_error=argument_error))
        getter: Optional[asyncio.Future] = None
        try:
            while not task.done():
                timeout = None if deadline is None else deadline - loop.time()
                if timeout is not None and timeout <= 0:
                    raise TurnTimeout(f"tool {name} did not finish before the turn deadline")
                getter = asyncio.ensure_future(self.channel.get())
                done, _ = await asyncio.wait({task, getter}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    yield {"type": "annotation", "annotation": getter.result()}
                else:
                    getter.cancel()
            for annotation in self.channel.drain():
                yield {"type": "annotation", "annotation": annotation}
            result = task.result()
            yield {"type": "tool_result", "result": result}
        finally:
            if getter is not None and not getter.done():
                getter.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
