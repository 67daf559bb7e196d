"""Agent tools module."""

from ff1agent.agent.tools.acquisition import (
    FetchFeedPlaylistItemsTool,
    QueryRequirementTool,
    ResolveDomainsTool,
    SearchFeedPlaylistTool,
)
from ff1agent.agent.tools.base import Tool
from ff1agent.agent.tools.delivery import PublishPlaylistTool, SendToDeviceTool
from ff1agent.agent.tools.lookup import (
    GetConfiguredDevicesTool,
    GetFeedServersTool,
    VerifyAddressesTool,
)
from ff1agent.agent.tools.playlist import BuildPlaylistTool, VerifyPlaylistTool
from ff1agent.agent.tools.registry import ToolRegistry
from ff1agent.agent.tools.terminal import (
    ConfirmPublishPlaylistTool,
    ConfirmSendPlaylistTool,
    ParseRequirementsTool,
)

__all__ = [
    "BuildPlaylistTool",
    "ConfirmPublishPlaylistTool",
    "ConfirmSendPlaylistTool",
    "FetchFeedPlaylistItemsTool",
    "GetConfiguredDevicesTool",
    "GetFeedServersTool",
    "ParseRequirementsTool",
    "PublishPlaylistTool",
    "QueryRequirementTool",
    "ResolveDomainsTool",
    "SearchFeedPlaylistTool",
    "SendToDeviceTool",
    "Tool",
    "ToolRegistry",
    "VerifyAddressesTool",
    "VerifyPlaylistTool",
]
