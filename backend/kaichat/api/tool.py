"""
Tool invocation endpoint.

Multipart requests carrying a JSON ``data`` field plus optional files. The
response is always a JSON envelope with permissive CORS headers.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from kaichat.api.deps import ToolService

router = APIRouter()

# TODO: restrict Access-Control-Allow-Origin once the web client origins are fixed
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST",
    "Access-Control-Allow-Headers": "Content-Type",
}


@router.post("/")
async def invoke_tool(request: Request, service: ToolService):
    """Stream uploads to storage and run the tool through Kai AI."""
    response = await service.invoke_tool(
        request.headers.get("content-type"),
        request.stream(),
    )
    return JSONResponse(
        content=response.to_wire(),
        status_code=response.status_code,
        headers=CORS_HEADERS,
    )


@router.options("/")
async def tool_preflight():
    return Response(status_code=204, headers=CORS_HEADERS)


@router.api_route("/", methods=["GET", "PUT", "PATCH", "DELETE"])
async def tool_method_not_allowed():
    return JSONResponse(
        content={"message": "Method Not Allowed"},
        status_code=405,
        headers=CORS_HEADERS,
    )
