"""Pydantic argument models for the agent's tools.

Field names follow the camelCase names the model sees in the tool schemas.
"""

from __future__ import annotations

from typing import List

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ToolArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ListFilesArgs(_ToolArgs):
    pass


class ReadFilesArgs(_ToolArgs):
    fileIds: List[str] = Field(description="An array of file IDs to read.")

    @field_validator("fileIds")
    @classmethod
    def _require_ids(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one file ID must be provided")
        if any(not item.strip() for item in value):
            raise ValueError("File ID cannot be empty")
        return value


class FileSpec(_ToolArgs):
    name: str = Field(description="The name of the file including extension. Must be unique within the same folder.")
    content: str = Field(description="The content of the file.")

    @field_validator("name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        if not value:
            raise ValueError("File name cannot be empty")
        return value


class CreateFilesArgs(_ToolArgs):
    parentId: str = Field(
        description=(
            "The ID of the parent folder where the files will be created. Use empty string for the root folder. "
            "Must be a valid folder ID. Use listFiles tool to get the list of available files and their IDs."
        ),
    )
    files: List[FileSpec] = Field(
        description=(
            "Array of files to create. Each file must have a name and content. "
            "The name must be unique within the same folder."
        ),
    )

    @field_validator("files")
    @classmethod
    def _require_files(cls, value: List[FileSpec]) -> List[FileSpec]:
        if not value:
            raise ValueError("Provide at least one file to create.")
        return value


class CreateFolderArgs(_ToolArgs):
    name: str = Field(description="The name of the folder to create.")
    parentId: str = Field(
        description="The ID (not name!) of the parent folder from listFiles. Use empty string for root level.",
    )

    @field_validator("name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        if not value:
            raise ValueError("Folder name is required.")
        return value


class RenameFileArgs(_ToolArgs):
    fileId: str = Field(description="The ID of the file or folder to rename.")
    newName: str = Field(description="The new name for the file or folder.")

    @field_validator("fileId")
    @classmethod
    def _require_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("File ID is required")
        return value

    @field_validator("newName")
    @classmethod
    def _require_name(cls, value: str) -> str:
        if not value:
            raise ValueError("New name is required")
        return value


class DeleteFilesArgs(_ToolArgs):
    fileIds: List[str] = Field(
        description="An array of file or folder IDs to delete. Folders are deleted with everything inside them.",
    )

    @field_validator("fileIds")
    @classmethod
    def _require_ids(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one file ID must be provided")
        return value


class UpdateFileArgs(_ToolArgs):
    fileId: str = Field(description="The ID of the file to update.")
    content: str = Field(description="The new content for the file.")

    @field_validator("fileId")
    @classmethod
    def _require_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("File ID is required")
        return value


class ScrapeUrlsArgs(_ToolArgs):
    urls: List[str] = Field(description="Array of URLs to scrape content from.")

    @field_validator("urls")
    @classmethod
    def _require_urls(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("Provide at least one valid URL to scrape.")
        for url in value:
            try:
                parsed = httpx.URL(url)
            except (httpx.InvalidURL, TypeError) as exc:
                raise ValueError("Invalid URL format") from exc
            if parsed.scheme not in {"http", "https"} or not parsed.host:
                raise ValueError("Invalid URL format")
        return value


__all__ = [
    "CreateFilesArgs",
    "CreateFolderArgs",
    "DeleteFilesArgs",
    "FileSpec",
    "ListFilesArgs",
    "ReadFilesArgs",
    "RenameFileArgs",
    "ScrapeUrlsArgs",
    "UpdateFileArgs",
]
