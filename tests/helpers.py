"""Fakes shared by the test modules: MCP sessions, a connector and a scripted model client."""

import asyncio
import json
import re
from types import SimpleNamespace
from typing import Any, Callable, Dict, Iterable, List, Optional

from mcpchat.errors import DiscoveryError, InvocationError, ServerConnectionError


def run(coro):
    return asyncio.run(coro)


PAIR_SCHEMA = {
    "type": "object",
    "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
    "required": ["a", "b"],
}


class FakeSession:
    def __init__(
        self,
        server: str,
        tools: Dict[str, Callable[..., Any]],
        *,
        fail_discovery: bool = False,
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.server = server
        self.tools = tools
        self.fail_discovery = fail_discovery
        self.input_schema = PAIR_SCHEMA if input_schema is None else input_schema
        self.calls: List[tuple] = []
        self.close_count = 0
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    async def list_tools(self) -> List[Any]:
        if self.fail_discovery:
            raise DiscoveryError(self.server, "tools/list failed")
        return [
            SimpleNamespace(
                name=name,
                description=f"{name} from {self.server}",
                inputSchema=self.input_schema,
            )
            for name in self.tools
        ]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> str:
        self.calls.append((tool_name, arguments))
        try:
            return str(self.tools[tool_name](**arguments))
        except Exception as exc:
            raise InvocationError(f"{self.server}/{tool_name}: {exc}") from exc

    async def close(self) -> None:
        self.close_count += 1
        self._open = False


class FakeConnector:
    """Hands out FakeSessions; servers listed in ``failing`` refuse to connect."""

    def __init__(
        self,
        tools_by_server: Optional[Dict[str, Dict[str, Callable[..., Any]]]] = None,
        *,
        failing: Iterable[str] = (),
        failing_discovery: Iterable[str] = (),
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.tools_by_server = tools_by_server or {}
        self.failing = set(failing)
        self.failing_discovery = set(failing_discovery)
        self.input_schema = input_schema
        self.sessions: List[FakeSession] = []
        self.connected: List[str] = []

    async def __call__(self, name: str, descriptor: Any, *, timeout: Optional[float] = None) -> FakeSession:
        await asyncio.sleep(0)
        if name in self.failing:
            raise ServerConnectionError(name, "spawn failed")
        session = FakeSession(
            name,
            self.tools_by_server.get(name, {}),
            fail_discovery=name in self.failing_discovery,
            input_schema=self.input_schema,
        )
        self.sessions.append(session)
        self.connected.append(name)
        return session

    @property
    def open_count(self) -> int:
        return sum(1 for session in self.sessions if session.is_open)


def function_call(call_id: str, name: str, **arguments: Any) -> SimpleNamespace:
    return SimpleNamespace(type="function_call", call_id=call_id, name=name, arguments=json.dumps(arguments))


def response(*items: Any, text: str = "") -> SimpleNamespace:
    return SimpleNamespace(output=list(items), output_text=text)


def answer(text: str) -> SimpleNamespace:
    return response(SimpleNamespace(type="message"), text=text)


class FakeResponses:
    def __init__(self, script: Iterable[Any]) -> None:
        self.script = list(script)
        self.requests: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.requests.append({**kwargs, "input": list(kwargs["input"])})
        step = self.script[min(len(self.requests), len(self.script)) - 1]
        if callable(step):
            step = step(len(self.requests))
        if isinstance(step, BaseException):
            raise step
        return step


class FakeModel:
    """Stands in for AsyncOpenAI: replays one scripted response per ``responses.create`` call.

    Script entries may be responses, exceptions to raise, or callables taking the
    1-based request number. The last entry repeats once the script runs out.
    """

    def __init__(self, *script: Any) -> None:
        self.responses = FakeResponses(script)


def parse_sse(body: str) -> List[tuple]:
    events = []
    for block in re.split(r"\r?\n\r?\n", body.strip()):
        kind, data = "message", []
        for line in block.splitlines():
            if line.startswith("event:"):
                kind = line[len("event:"):].strip()
            elif line.startswith("data:"):
                data.append(line[len("data:"):].lstrip())
        if data:
            events.append((kind, json.loads("\n".join(data))))
    return events


def raw_function_call(call_id: str, name: str, arguments: str) -> SimpleNamespace:
    return SimpleNamespace(type="function_call", call_id=call_id, name=name, arguments=arguments)
