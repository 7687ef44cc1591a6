"""Contents resource client: single-file reads and writes."""

import base64
import binascii
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from pagesync.exceptions import ValidationError
from pagesync.types.files import DataSource, FileContent
from pagesync.types.repos import RepositoryRef

if TYPE_CHECKING:
    from pagesync.clock import CancellationToken
    from pagesync.transport import HTTPTransport


def contents_path(repo: RepositoryRef, path: str) -> str:
    return f"/repos/{repo.full_name}/contents/{quote(path.lstrip('/'))}"


def encode_content(content: str | bytes, is_binary: bool = False) -> str:
    """
    Base64 payload for upload.

    ``bytes`` are always encoded. A ``str`` is taken as already-base64 when
    ``is_binary`` is set, otherwise it is encoded as UTF-8 text.
    """
    if isinstance(content, bytes):
        return base64.b64encode(content).decode("ascii")
    if is_binary:
        return content
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def _parse_file(data: Any, path: str, binary: bool) -> FileContent:
    if not isinstance(data, dict) or data.get("type", "file") != "file":
        raise ValidationError("NOT_A_FILE", f"{path} is not a file")

    raw = data.get("content") or ""
    payload = "".join(raw.split())  # The remote wraps base64 at 60 columns
    if binary:
        content, encoding = payload, "base64"
    else:
        try:
            content, encoding = base64.b64decode(payload).decode("utf-8"), "utf-8"
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValidationError("NOT_TEXT", f"{path} is not UTF-8 text, read it as binary") from e

    return FileContent(
        path=data.get("path", path),
        content=content,
        version_tag=data.get("sha"),
        size=data.get("size", 0),
        encoding=encoding,
        download_url=data.get("download_url"),
        source=DataSource.LIVE,
    )


class ContentsClient:
    """Client for the contents endpoints."""

    def __init__(self, transport: "HTTPTransport") -> None:
        """
        Initialize the contents client.

        Args:
            transport: HTTP transport for making requests
        """
        self.transport = transport

    def get(
        self,
        repo: RepositoryRef,
        path: str,
        ref: str | None = None,
        binary: bool = False,
        cancel: "CancellationToken | None" = None,
    ) -> FileContent:
        """
        Read one file.

        Args:
            repo: Target repository
            path: File path within the repository
            ref: Branch, tag or sha (default: the working branch)
            binary: Keep the base64 payload instead of decoding UTF-8
            cancel: Optional cancellation token

        Returns:
            FileContent with source LIVE

        Raises:
            NotFoundError: If the path does not exist
            ValidationError: If the path is a directory
        """
        data = self.transport.request(
            "GET",
            contents_path(repo, path),
            params={"ref": ref or repo.branch},
            cancel=cancel,
        )
        return _parse_file(data, path, binary)

    def put(
        self,
        repo: RepositoryRef,
        path: str,
        encoded_content: str,
        message: str,
        sha: str | None = None,
        cancel: "CancellationToken | None" = None,
    ) -> dict[str, Any]:
        """
        Create or replace one file with a single commit.

        Args:
            repo: Target repository
            path: File path within the repository
            encoded_content: Base64 file content
            message: Commit message
            sha: Current blob sha, required when the file exists

        Returns:
            Raw response with "content" and "commit" objects

        Raises:
            ConflictError: If ``sha`` does not match the current file
        """
        body: dict[str, Any] = {
            "message": message,
            "content": encoded_content,
            "branch": repo.branch,
        }
        if sha:
            body["sha"] = sha

        return self.transport.request("PUT", contents_path(repo, path), body=body, cancel=cancel)
