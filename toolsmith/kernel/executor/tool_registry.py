"""ToolRegistry: Central registry for tool contracts."""

from __future__ import annotations

import structlog

from toolsmith.kernel.executor.errors import ErrorCode
from toolsmith.kernel.executor.tool_contract import ToolContract

logger = structlog.get_logger(__name__)


class ToolNotFoundError(LookupError):
    """Raised when a requested tool is not found in the registry.

    Attributes:
        code: Always ``TOOL_NOT_FOUND``
        tool_name: Name of the tool that was not found
        version: Version of the tool that was not found (None for "latest")
    """

    code = ErrorCode.TOOL_NOT_FOUND.value

    def __init__(self, tool_name: str, version: str | None = None) -> None:
        """Initialize tool not found error.

        Args:
            tool_name: Name of the tool that was not found
            version: Version of the tool that was not found
        """
        if version is None:
            message = f"Tool '{tool_name}' not found in registry"
        else:
            message = f"Tool '{tool_name}' version '{version}' not found in registry"
        super().__init__(message)
        self.tool_name = tool_name
        self.version = version


def _version_key(version: str) -> tuple[tuple[int, int | str], ...]:
    # Numeric parts compare numerically and sort after textual ones.
    return tuple(
        (1, int(part)) if part.isdigit() else (0, part)
        for part in version.replace("-", ".").split(".")
    )


class ToolRegistry:
    """Central registry for tool contracts.

    Provides:
    - Registration of tools with name and version
    - Lookup by exact name and version
    - Resolution of the latest registered version of a name
    """

    def __init__(self) -> None:
        """Initialize tool registry."""
        # Storage: {(name, version): ToolContract}
        self._tools: dict[tuple[str, str], ToolContract] = {}

    def register(self, tool: ToolContract) -> None:
        """Register a tool in the registry.

        Args:
            tool: ToolContract to register

        Raises:
            ValueError: If tool with same name/version already registered
        """
        key = (tool.name, tool.version)

        if key in self._tools:
            raise ValueError(f"Tool '{tool.name}' version '{tool.version}' already registered")

        self._tools[key] = tool
        logger.info(
            "Tool registered",
            tool=tool.name,
            version=tool.version,
            capabilities=list(tool.metadata.capabilities),
        )

    def lookup(self, name: str, version: str) -> ToolContract:
        """Look up a tool by name and version.

        Args:
            name: Tool name
            version: Tool version (SemVer string)

        Returns:
            ToolContract for the requested tool

        Raises:
            ToolNotFoundError: If tool not found in registry
        """
        key = (name, version)

        if key not in self._tools:
            raise ToolNotFoundError(name, version)

        return self._tools[key]

    def resolve(self, name: str, version: str | None = None) -> ToolContract:
        """Look up a tool, defaulting to its highest registered version.

        Args:
            name: Tool name
            version: Tool version; the latest one when omitted

        Raises:
            ToolNotFoundError: If no matching tool is registered
        """
        if version is not None:
            return self.lookup(name, version)

        versions = [key_version for key_name, key_version in self._tools if key_name == name]
        if not versions:
            raise ToolNotFoundError(name)
        return self._tools[(name, max(versions, key=_version_key))]

    def resolve_id(self, tool_id: str) -> ToolContract:
        """Resolve a ``name`` or ``name@version`` identifier."""
        name, _, version = tool_id.partition("@")
        return self.resolve(name, version or None)

    def list_tools(self) -> dict[tuple[str, str], ToolContract]:
        """List all registered tools.

        Returns:
            Dictionary mapping (name, version) to ToolContract
        """
        return self._tools.copy()

    def __len__(self) -> int:
        return len(self._tools)
