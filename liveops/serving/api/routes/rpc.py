"""
RPC Endpoint

``POST /v2/rpc/{rpc_id}`` carries the RPC payload as the raw request body
and returns the RPC's JSON document. Operation failures are reported in the
document (``success: false``), not through HTTP status codes.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from liveops.rpc.registry import CallerContext, RpcPermissionError, RpcRegistry, UnknownRpcError
from liveops.serving.api.dependencies import get_caller_context

router = APIRouter()


@router.post("/rpc/{rpc_id}")
async def call_rpc(
    rpc_id: str,
    request: Request,
    ctx: CallerContext = Depends(get_caller_context),
) -> Response:
    """Invoke a registered RPC as the authenticated caller"""
    registry: RpcRegistry = request.app.state.rpc_registry
    payload = await request.body()

    try:
        body = await registry.dispatch(rpc_id, ctx, payload)
    except UnknownRpcError:
        raise HTTPException(status_code=404, detail=f"Unknown RPC: {rpc_id}")
    except RpcPermissionError:
        raise HTTPException(status_code=403, detail="Administrative access required")

    return Response(content=body, media_type="application/json")
