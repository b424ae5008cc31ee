"""Validated source host payloads.

GitHub responses are parsed into these models the moment they arrive;
nothing past the client handles raw JSON dicts. Unknown fields are ignored,
missing required fields fail validation.
"""

from __future__ import annotations

import base64
import binascii
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class RepoOwner(_Payload):
    login: str


class SearchRepoItem(_Payload):
    name: str
    default_branch: str
    archived: bool = False
    owner: RepoOwner


class SearchPage(_Payload):
    items: list[SearchRepoItem] = Field(default_factory=list)


class WorkshopRepository(_Payload):
    """A repository discovered as a workshop candidate."""

    owner: str
    name: str
    default_branch: str

    @classmethod
    def from_search_item(cls, item: SearchRepoItem) -> WorkshopRepository:
        return cls(owner=item.owner.login, name=item.name, default_branch=item.default_branch)


class TreeEntry(_Payload):
    path: str
    type: Literal["blob", "tree", "commit"]
    sha: str
    size: int | None = None


class RepoTree(_Payload):
    sha: str
    truncated: bool = False
    tree: list[TreeEntry] = Field(default_factory=list)

    def blobs_by_path(self) -> dict[str, TreeEntry]:
        return {entry.path: entry for entry in self.tree if entry.type == "blob"}


class BlobPayload(_Payload):
    encoding: str
    content: str

    def decode(self) -> str | None:
        """Decoded text, or None for encodings other than base64."""
        if self.encoding != "base64":
            return None
        try:
            raw = base64.b64decode(self.content.replace("\n", ""), validate=False)
        except binascii.Error:
            return None
        return raw.decode("utf-8", errors="replace")


class CompareFile(_Payload):
    filename: str = ""


class CompareResult(_Payload):
    status: str | None = None
    ahead_by: int = 0
    behind_by: int = 0
    files: list[CompareFile] = Field(default_factory=list)

    def filenames(self) -> list[str]:
        return [name for f in self.files if (name := f.filename.strip())]
