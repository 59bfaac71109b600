"""
Tool invocation models.

A tool invocation is a one-shot request; nothing here is persisted.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

FILES_INPUT_NAME = "files"


class UploadedArtifact(BaseModel):
    """A file streamed to the object store during a tool invocation."""

    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(..., alias="filePath")
    url: str
    filename: str


class ToolInput(BaseModel):
    """A named tool input value."""

    model_config = ConfigDict(extra="allow")

    name: str
    value: Any = None


class ToolData(BaseModel):
    """The ``tool_data`` block of a tool request; extra keys pass through."""

    model_config = ConfigDict(extra="allow")

    tool_id: Any = Field(..., description="Tool identifier, forwarded as given")
    inputs: list[dict[str, Any]] = Field(default_factory=list)

    def with_uploads(self, uploads: list[UploadedArtifact]) -> "ToolData":
        """
        Return tool data whose inputs carry the uploaded files.

        With no uploads the original ``inputs`` list is forwarded as is.
        """
        if not uploads:
            return self
        files_input = ToolInput(
            name=FILES_INPUT_NAME,
            value=[upload.model_dump(by_alias=True) for upload in uploads],
        )
        return self.model_copy(
            update={"inputs": [*self.inputs, files_input.model_dump()]}
        )


class ToolRequest(BaseModel):
    """Decoded ``data`` control field of a multipart tool request."""

    model_config = ConfigDict(extra="allow")

    tool_data: ToolData
    user: dict[str, Any] | None = None


class ToolResponse(BaseModel):
    """Envelope returned by the tool endpoint; never raised as an error."""

    success: bool
    data: Any = None
    message: str | None = None
    status_code: int = Field(200, exclude=True)

    def to_wire(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "message": self.message}
