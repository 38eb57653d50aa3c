from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError


class ProcessServer(BaseModel):
    """MCP server spawned as a child process and spoken to over stdio."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    command: str
    args: List[str]
    env: Dict[str, str]
    cwd: Optional[str] = None

    @field_validator("command")
    @classmethod
    def _command_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("command must not be empty")
        return value

    @property
    def kind(self) -> Literal["process"]:
        return "process"

    def to_config(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class NetworkServer(BaseModel):
    """MCP server reached over streamable HTTP."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str
    headers: Optional[Dict[str, str]] = None

    @field_validator("url")
    @classmethod
    def _url_is_http(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return value

    @property
    def kind(self) -> Literal["network"]:
        return "network"

    def to_config(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


ServerDescriptor = Union[ProcessServer, NetworkServer]


def parse_descriptor(data: Any) -> ServerDescriptor:
    if isinstance(data, (ProcessServer, NetworkServer)):
        return data
    if not isinstance(data, dict):
        raise ConfigError(f"server config must be an object, got {type(data).__name__}")
    # Pick the variant from its identifying field so the error names the right contract.
    if "command" in data:
        model: type[BaseModel] = ProcessServer
    elif "url" in data:
        model = NetworkServer
    else:
        raise ConfigError("server config needs either 'command' (with 'args' and 'env') or 'url'")
    try:
        return model.model_validate(data)  # type: ignore[return-value]
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"invalid server config: {problems}") from exc


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1, description="Conversation history, oldest first")
    model: Optional[str] = Field(None, description="Override model name for this request")


class ServerUpsert(BaseModel):
    # Loosely typed so the route answers malformed bodies with a 400 and a message.
    mcpServer: Any = None
    config: Any = None


class ServerDelete(BaseModel):
    mcpServer: Any = None
