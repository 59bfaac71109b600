"""
Tool invocation with multipart file ingestion.

The multipart body is parsed as it streams in. Every file part gets its own
upload task fed through a bounded queue, so memory per file stays bounded and
uploads overlap. All uploads are joined before the tool payload is built; one
failed upload fails the whole invocation and Kai AI is never called. Objects
already stored by a failed invocation are deleted again.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from kaichat.core.exceptions import KaiError, ValidationError
from kaichat.core.logger import logger
from kaichat.interfaces.storage_provider import IStorageProvider
from kaichat.models.gateway import ToolPayload
from kaichat.models.tool import ToolRequest, ToolResponse, UploadedArtifact
from kaichat.services.kai_gateway import KaiGateway

CONTROL_FIELD = "data"
UPLOAD_PREFIX = "uploads"
FAILURE_MESSAGE = "An unexpected error occurred while processing the tool request"


def build_upload_key(filename: str) -> str:
    """Storage key ``uploads/<uuid>-<filename>``; path components are dropped."""
    name = PurePosixPath(filename.replace("\\", "/")).name or "file"
    return f"{UPLOAD_PREFIX}/{uuid4()}-{name}"


@dataclass
class _FileUpload:
    key: str
    filename: str
    content_type: Optional[str]
    queue: asyncio.Queue
    task: Optional[asyncio.Task] = None


@dataclass
class _PartState:
    headers: dict[bytes, bytes] = field(default_factory=dict)
    header_field: bytes = b""
    header_value: bytes = b""
    upload: Optional[_FileUpload] = None
    is_control: bool = False


class _PartEvents:
    """Collects parser callbacks so they can be handled asynchronously."""

    def __init__(self):
        self.events: list[tuple[str, bytes]] = []

    def callbacks(self) -> dict[str, Any]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
        }

    def on_part_begin(self) -> None:
        self.events.append(("part_begin", b""))

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self.events.append(("part_data", data[start:end]))

    def on_part_end(self) -> None:
        self.events.append(("part_end", b""))

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self.events.append(("header_field", data[start:end]))

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self.events.append(("header_value", data[start:end]))

    def on_header_end(self) -> None:
        self.events.append(("header_end", b""))

    def on_headers_finished(self) -> None:
        self.events.append(("headers_finished", b""))

    def drain(self) -> list[tuple[str, bytes]]:
        events, self.events = self.events, []
        return events


async def _queued_chunks(queue: asyncio.Queue) -> AsyncIterator[bytes]:
    while True:
        chunk = await queue.get()
        if chunk is None:
            return
        yield chunk


class ToolIngestionService:
    """Parses tool requests, streams their files and calls Kai AI."""

    def __init__(
        self,
        storage: IStorageProvider,
        gateway: KaiGateway,
        queue_depth: int = 8,
    ):
        self.storage = storage
        self.gateway = gateway
        self.queue_depth = queue_depth

    # ---------- Uploads ----------

    def _start_upload(self, filename: str, content_type: Optional[str]) -> _FileUpload:
        upload = _FileUpload(
            key=build_upload_key(filename),
            filename=filename,
            content_type=content_type,
            queue=asyncio.Queue(maxsize=self.queue_depth),
        )
        upload.task = asyncio.create_task(self._upload(upload))
        logger.debug(f"Started upload of {filename} to {upload.key}")
        return upload

    async def _upload(self, upload: _FileUpload) -> None:
        await self.storage.upload_stream(
            upload.key, _queued_chunks(upload.queue), upload.content_type
        )

    @staticmethod
    async def _feed(upload: _FileUpload, chunk: Optional[bytes]) -> None:
        """Hand a chunk (None ends the file) to an upload, waiting for room."""
        if upload.task.done():
            # Already settled; a failure is reported at the barrier
            return
        try:
            upload.queue.put_nowait(chunk)
            return
        except asyncio.QueueFull:
            pass
        put = asyncio.ensure_future(upload.queue.put(chunk))
        await asyncio.wait({put, upload.task}, return_when=asyncio.FIRST_COMPLETED)
        if not put.done():
            put.cancel()

    @staticmethod
    def _raise_first_failure(uploads: list[_FileUpload]) -> None:
        for upload in uploads:
            if upload.task.done() and not upload.task.cancelled():
                error = upload.task.exception()
                if error is not None:
                    raise error

    async def _await_uploads(self, uploads: list[_FileUpload]) -> list[UploadedArtifact]:
        """Join every upload, then publish them all."""
        if not uploads:
            return []
        await asyncio.gather(*(upload.task for upload in uploads))
        await asyncio.gather(*(self.storage.make_public(upload.key) for upload in uploads))
        artifacts = [
            UploadedArtifact(
                file_path=upload.key,
                url=self.storage.get_public_url(upload.key),
                filename=upload.filename,
            )
            for upload in uploads
        ]
        for artifact in artifacts:
            logger.info(f"File {artifact.filename} uploaded and available at {artifact.url}")
        return artifacts

    @staticmethod
    async def _cancel_uploads(uploads: list[_FileUpload]) -> None:
        tasks = [upload.task for upload in uploads if upload.task is not None]
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            # Collect every outcome so no task exception goes unretrieved
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _discard_uploads(self, uploads: list[_FileUpload]) -> None:
        """Cancel pending uploads and delete the objects of finished ones."""
        await self._cancel_uploads(uploads)
        finished = [
            upload.key
            for upload in uploads
            if upload.task is not None
            and not upload.task.cancelled()
            and upload.task.exception() is None
        ]
        if not finished:
            return
        results = await asyncio.gather(
            *(self.storage.delete(key) for key in finished), return_exceptions=True
        )
        for key, result in zip(finished, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to delete orphaned upload {key}: {result}")
            else:
                logger.info(f"Deleted orphaned upload {key}")

    # ---------- Multipart ----------

    async def _handle_events(
        self,
        events: list[tuple[str, bytes]],
        part: _PartState,
        control: bytearray,
        uploads: list[_FileUpload],
    ) -> _PartState:
        for kind, data in events:
            if kind == "part_begin":
                part = _PartState()
            elif kind == "header_field":
                part.header_field += data
            elif kind == "header_value":
                part.header_value += data
            elif kind == "header_end":
                part.headers[part.header_field.lower()] = part.header_value
                part.header_field = b""
                part.header_value = b""
            elif kind == "headers_finished":
                self._classify_part(part, uploads)
            elif kind == "part_data":
                if part.upload is not None:
                    await self._feed(part.upload, data)
                elif part.is_control:
                    control.extend(data)
            elif kind == "part_end":
                if part.upload is not None:
                    await self._feed(part.upload, None)
                part = _PartState()
        return part

    def _classify_part(self, part: _PartState, uploads: list[_FileUpload]) -> None:
        disposition = part.headers.get(b"content-disposition")
        if not disposition:
            logger.debug("Ignoring multipart part without Content-Disposition")
            return
        _, options = parse_options_header(disposition)
        name = options.get(b"name", b"").decode("utf-8", "replace")
        filename = options.get(b"filename")

        if filename:
            content_type = part.headers.get(b"content-type")
            part.upload = self._start_upload(
                filename.decode("utf-8", "replace"),
                content_type.decode("latin-1") if content_type else None,
            )
            uploads.append(part.upload)
        elif name == CONTROL_FIELD:
            part.is_control = True
        else:
            logger.debug(f"Ignoring unrecognized field: {name}")

    async def _ingest(
        self,
        content_type: Optional[str],
        body: AsyncIterator[bytes],
        uploads: list[_FileUpload],
    ) -> bytes:
        """Parse the body, starting uploads as file parts appear."""
        mime_type, params = parse_options_header(content_type or "")
        boundary = params.get(b"boundary")
        if mime_type != b"multipart/form-data" or not boundary:
            raise ValidationError("Expected a multipart/form-data request")

        events = _PartEvents()
        parser = MultipartParser(boundary, events.callbacks())
        part = _PartState()
        control = bytearray()

        try:
            async for chunk in body:
                parser.write(chunk)
                part = await self._handle_events(events.drain(), part, control, uploads)
                self._raise_first_failure(uploads)
            parser.finalize()
        except MultipartParseError as e:
            raise ValidationError("Malformed multipart body") from e
        part = await self._handle_events(events.drain(), part, control, uploads)

        if part.upload is not None:
            raise ValidationError("Multipart body ended inside a file part")
        return bytes(control)

    @staticmethod
    def _parse_control(control: bytes) -> ToolRequest:
        if not control:
            raise ValidationError(f"Missing '{CONTROL_FIELD}' field")
        try:
            return ToolRequest.model_validate(json.loads(control))
        except (ValueError, PydanticValidationError) as e:
            raise ValidationError(f"Invalid '{CONTROL_FIELD}' field") from e

    # ---------- Operation ----------

    async def invoke_tool(
        self,
        content_type: Optional[str],
        body: AsyncIterator[bytes],
    ) -> ToolResponse:
        """
        Run a multipart tool request end to end.

        Args:
            content_type: Request Content-Type header (carries the boundary)
            body: Request body stream

        Returns:
            Success envelope with the Kai AI response body, or a failure
            envelope. Never raises for request-level failures.
        """
        uploads: list[_FileUpload] = []
        try:
            control = await self._ingest(content_type, body, uploads)
            request = self._parse_control(control)
            logger.debug(f"Tool request for {request.tool_data.tool_id}")

            artifacts = await self._await_uploads(uploads)
            tool_data = request.tool_data.with_uploads(artifacts)

            result = await self.gateway.send(ToolPayload(user=request.user, tool_data=tool_data))
            return ToolResponse(success=True, data=result.data)
        except asyncio.CancelledError:
            await self._discard_uploads(uploads)
            raise
        except KaiError as e:
            logger.error(f"Error processing tool request: {e.message}")
            await self._discard_uploads(uploads)
            return ToolResponse(success=False, message=e.message, status_code=500)
        except Exception as e:
            logger.exception(f"Error processing tool request: {e}")
            await self._discard_uploads(uploads)
            return ToolResponse(success=False, message=FAILURE_MESSAGE, status_code=500)
