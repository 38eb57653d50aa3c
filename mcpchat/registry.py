"""Server registry: the durable name -> descriptor mapping behind the settings API.

The chat core only ever calls ``list()`` and receives a snapshot; add/remove
are for the settings surface.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Protocol

from .errors import ConfigError
from .schemas import ServerDescriptor, parse_descriptor

logger = logging.getLogger(__name__)

SERVERS_KEY = "mcpServers"


class ServerRegistry(Protocol):
    def list(self) -> Dict[str, ServerDescriptor]: ...

    def add(self, name: str, descriptor: ServerDescriptor) -> None: ...

    def remove(self, name: str) -> None: ...


def _check_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ConfigError("server name must be a non-empty string")
    return name


def servers_from_config(config: Mapping[str, Any]) -> Dict[str, ServerDescriptor]:
    """Validate a ``{name: config}`` mapping, naming the first bad entry."""
    servers: Dict[str, ServerDescriptor] = {}
    for name, item in config.items():
        _check_name(name)
        try:
            servers[name] = parse_descriptor(item)
        except ConfigError as exc:
            raise ConfigError(f"server '{name}': {exc}") from exc
    return servers


class InMemoryServerRegistry:
    def __init__(self, servers: Mapping[str, Any] | None = None) -> None:
        self._servers: Dict[str, ServerDescriptor] = servers_from_config(servers or {})
        self._lock = threading.Lock()

    def list(self) -> Dict[str, ServerDescriptor]:
        with self._lock:
            return dict(self._servers)

    def add(self, name: str, descriptor: ServerDescriptor) -> None:
        descriptor = parse_descriptor(descriptor)
        with self._lock:
            self._servers[_check_name(name)] = descriptor

    def remove(self, name: str) -> None:
        with self._lock:
            del self._servers[name]


class JsonFileServerRegistry:
    """Registry persisted as ``{"mcpServers": {...}}`` in a JSON file.

    Other top-level keys in the file are kept untouched on write. A missing
    file reads as an empty registry.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise ConfigError(f"{self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{self.path} must contain a JSON object")
        servers = data.get(SERVERS_KEY) or {}
        if not isinstance(servers, dict):
            raise ConfigError(f"{self.path}: '{SERVERS_KEY}' must be an object")
        data[SERVERS_KEY] = servers
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
                handle.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def list(self) -> Dict[str, ServerDescriptor]:
        with self._lock:
            data = self._read()
        return servers_from_config(data[SERVERS_KEY])

    def add(self, name: str, descriptor: ServerDescriptor) -> None:
        name = _check_name(name)
        descriptor = parse_descriptor(descriptor)
        with self._lock:
            data = self._read()
            data[SERVERS_KEY][name] = descriptor.to_config()
            self._write(data)
        logger.info("Saved MCP server %s (%s) to %s", name, descriptor.kind, self.path)

    def remove(self, name: str) -> None:
        with self._lock:
            data = self._read()
            if name not in data[SERVERS_KEY]:
                raise KeyError(name)
            del data[SERVERS_KEY][name]
            self._write(data)
        logger.info("Removed MCP server %s from %s", name, self.path)
