"""Form body parsing: URL-encoded and multipart.

URL-encoded bodies use stdlib ``urllib.parse``; multipart bodies (file
uploads such as product images) go through ``python-multipart``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs

from python_multipart.multipart import MultipartParser, parse_options_header

from storefront.http.query import MultiValueDict


@dataclass(frozen=True, slots=True)
class UploadFile:
    """An uploaded file from a multipart form submission.

    Content is held in memory; ``max_content_length`` on ``AppConfig``
    bounds how large that can get.
    """

    filename: str
    content_type: str
    size: int
    content: bytes = field(repr=False)

    @property
    def extension(self) -> str:
        """Lower-cased file extension without the dot ("" when absent)."""
        return Path(self.filename).suffix.lstrip(".").lower()

    async def read(self) -> bytes:
        """Return the file content as bytes."""
        return self.content

    async def save(self, path: Path) -> None:
        """Write the file content to *path*. Parent directories must exist."""
        import anyio

        await anyio.Path(path).write_bytes(self.content)


class FormData(MultiValueDict):
    """Immutable parsed form data: string fields plus uploaded files.

    Usage::

        form = await request.form()
        email = form.get("email", "")
        image = form.files.get("image")  # UploadFile or None
    """

    __slots__ = ("_files",)

    def __init__(
        self,
        data: dict[str, list[str]] | None = None,
        files: dict[str, UploadFile] | None = None,
    ) -> None:
        super().__init__(data)
        object.__setattr__(self, "_files", files or {})

    @property
    def files(self) -> Mapping[str, UploadFile]:
        """Uploaded files by field name."""
        return self._files


async def parse_form_data(body: bytes, content_type: str) -> FormData:
    """Parse a request body into ``FormData``.

    Supports ``application/x-www-form-urlencoded`` and
    ``multipart/form-data``. Any other content type yields an empty
    ``FormData``: JSON and raw bodies are read through ``Request.json()``.

    Raises:
        ValueError: If a multipart body has no boundary parameter.
    """
    ct_lower = content_type.lower().split(";")[0].strip()

    if ct_lower == "application/x-www-form-urlencoded":
        return FormData(parse_qs(body.decode("utf-8", errors="replace"), keep_blank_values=True))

    if ct_lower == "multipart/form-data":
        return _parse_multipart(body, content_type)

    return FormData()


def _parse_multipart(body: bytes, content_type: str) -> FormData:
    """Parse multipart form data using python-multipart callbacks."""
    _, options = parse_options_header(content_type.encode("latin-1"))
    boundary = options.get(b"boundary")
    if boundary is None:
        msg = "Multipart form data missing boundary parameter"
        raise ValueError(msg)

    data: dict[str, list[str]] = {}
    files: dict[str, UploadFile] = {}
    part: dict[str, Any] = {}

    def on_part_begin() -> None:
        part.clear()
        part.update(headers={}, chunks=bytearray(), name=None, filename=None, pending="")

    def on_part_data(chunk: bytes, start: int, end: int) -> None:
        part["chunks"].extend(chunk[start:end])

    def on_header_field(chunk: bytes, start: int, end: int) -> None:
        part["pending"] = chunk[start:end].decode("latin-1").lower()

    def on_header_value(chunk: bytes, start: int, end: int) -> None:
        value = chunk[start:end].decode("latin-1")
        part["headers"][part["pending"]] = value
        if part["pending"] == "content-disposition":
            _, params = parse_options_header(value.encode("latin-1"))
            if (name := params.get(b"name")) is not None:
                part["name"] = name.decode("utf-8", errors="replace")
            if (filename := params.get(b"filename")) is not None:
                part["filename"] = filename.decode("utf-8", errors="replace")

    def on_part_end() -> None:
        name = part.get("name")
        if name is None:
            return
        content = bytes(part["chunks"])
        if part["filename"] is not None:
            # An empty file input still sends a part with filename=""
            if not part["filename"] and not content:
                return
            files[name] = UploadFile(
                filename=part["filename"],
                content_type=part["headers"].get("content-type", "application/octet-stream"),
                size=len(content),
                content=content,
            )
        else:
            data.setdefault(name, []).append(content.decode("utf-8", errors="replace"))

    parser = MultipartParser(
        boundary,
        {
            "on_part_begin": on_part_begin,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
        },
    )
    parser.write(body)
    parser.finalize()
    return FormData(data, files)
