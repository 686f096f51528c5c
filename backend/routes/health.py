"""Health check and tool registry endpoints."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/tools")
async def list_tools(request: Request):
    """Tools discovered at startup (empty when the tool server is unavailable)."""
    runtime = request.app.state.runtime
    return [tool.model_dump(by_alias=True) for tool in runtime.registry]
