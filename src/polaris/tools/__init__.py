"""Tools the coding agent uses to work on a project."""

from .file_tools import FileTools
from .tool_adapter import ToolAdapter
from .web_tools import UrlScraper

__all__ = ["FileTools", "ToolAdapter", "UrlScraper"]
