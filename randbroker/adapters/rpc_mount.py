"""
randbroker.adapters.rpc_mount
-----------------------------

Mount HTTP/JSON-RPC endpoints for the broker:

- REST (prefix `/broker` by default):
    GET  /status                  → instantiation state, configs, outbox depth
    GET  /configs                 → current policy records
    GET  /commitments             → ordered sequence (oldest first), ?limit
    GET  /commitments/pending     → pending index (ascending id), ?limit
    GET  /commitments/count       → {"num": <sequence length>}
    GET  /bots/{address}          → bot record or null
    POST /instantiate             → one-time setup
    POST /execute                 → run one execute message as `sender`
    GET  /outbox                  → drain delivered-message log

- JSON-RPC 2.0:
    POST /rpc                     → methods from :data:`randbroker.rpc.RPC_METHODS`

Optionally the same methods are registered on a host-provided JSON-RPC
registry. This module is transport glue only; behavior lives in
:class:`~randbroker.adapters.service.BrokerService`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query
from prometheus_client import make_asgi_app
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT
from ..errors import BrokerError
from ..rpc.methods import RPC_METHODS, CoinParam
from ..version import __version__
from .service import BrokerService

logger = logging.getLogger(__name__)

# JSON-RPC error codes
RPC_METHOD_NOT_FOUND = -32601
RPC_INVALID_PARAMS = -32602
RPC_SERVER_ERROR = -32000


# --------------------------------------------------------------------------------------
# Request models
# --------------------------------------------------------------------------------------

class InstantiateReq(BaseModel):
    sender: str = Field(..., min_length=1)
    params: Dict[str, Any]


class ExecuteReq(BaseModel):
    sender: str = Field(..., min_length=1)
    msg: Dict[str, Any]
    funds: List[CoinParam] = Field(default_factory=list)


class RpcReq(BaseModel):
    jsonrpc: str = "2.0"
    id: Any = None
    method: str
    params: Any = None


def _http_error(e: BrokerError) -> HTTPException:
    status = 403 if e.category == "authorization" else 400
    return HTTPException(status_code=status, detail=e.to_dict())


# --------------------------------------------------------------------------------------
# REST router
# --------------------------------------------------------------------------------------

def get_router(service: BrokerService, prefix: str = "/broker") -> APIRouter:
    r = APIRouter(prefix=prefix, tags=["broker"])

    @r.get("/status")
    def status() -> dict:
        return service.status()

    @r.get("/configs")
    def configs() -> dict:
        try:
            return service.get_configs()
        except BrokerError as e:
            raise _http_error(e)

    @r.get("/commitments")
    def commitments(limit: int = Query(DEFAULT_QUERY_LIMIT, ge=0, le=MAX_QUERY_LIMIT)) -> dict:
        return service.get_commitments(limit)

    @r.get("/commitments/pending")
    def pending(limit: int = Query(DEFAULT_QUERY_LIMIT, ge=0, le=MAX_QUERY_LIMIT)) -> dict:
        return service.get_pending_commitments(limit)

    @r.get("/commitments/count")
    def count() -> dict:
        return service.get_number_of_commitment()

    @r.get("/bots/{address}")
    def bot(address: str) -> Optional[dict]:
        try:
            return service.get_bot_info(address)
        except BrokerError as e:
            raise _http_error(e)

    @r.post("/instantiate")
    def instantiate(req: InstantiateReq) -> dict:
        try:
            return service.instantiate(req.sender, req.params)
        except BrokerError as e:
            raise _http_error(e)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @r.post("/execute")
    def execute(req: ExecuteReq) -> dict:
        try:
            return service.execute(req.sender, req.msg, [c.model_dump() for c in req.funds])
        except BrokerError as e:
            raise _http_error(e)

    @r.get("/outbox")
    def outbox() -> list:
        return service.drain_outbox()

    @r.post("/rpc")
    def rpc(req: RpcReq) -> dict:
        return _dispatch_jsonrpc(service, req)

    return r


# --------------------------------------------------------------------------------------
# JSON-RPC dispatch
# --------------------------------------------------------------------------------------

def _rpc_args(params: Any) -> Dict[str, Any]:
    # Accept both by-name params and a single positional object.
    if params is None:
        return {}
    if isinstance(params, dict):
        return params
    if isinstance(params, list):
        if not params:
            return {}
        if len(params) == 1 and isinstance(params[0], dict):
            return params[0]
    raise TypeError("params must be an object or a one-element array holding an object")


def _dispatch_jsonrpc(service: BrokerService, req: RpcReq) -> Dict[str, Any]:
    def err(code: int, message: str, data: Any = None) -> Dict[str, Any]:
        e: Dict[str, Any] = {"code": code, "message": message}
        if data is not None:
            e["data"] = data
        return {"jsonrpc": "2.0", "id": req.id, "error": e}

    fn = RPC_METHODS.get(req.method)
    if fn is None:
        return err(RPC_METHOD_NOT_FOUND, f"Method not found: {req.method}")
    try:
        args = _rpc_args(req.params)
    except TypeError as e:
        return err(RPC_INVALID_PARAMS, str(e))
    try:
        result = fn(service, args)
    except PydanticValidationError as e:
        return err(RPC_INVALID_PARAMS, "Invalid params", e.errors(include_url=False, include_context=False))
    except BrokerError as e:
        return err(RPC_SERVER_ERROR, e.message, e.to_dict())
    except ValueError as e:
        return err(RPC_INVALID_PARAMS, str(e))
    return {"jsonrpc": "2.0", "id": req.id, "result": result}


# --------------------------------------------------------------------------------------
# JSON-RPC registration helpers
# --------------------------------------------------------------------------------------

def _rpc_register(registry: Any, name: str, fn: Any) -> None:
    """
    Try a few common JSON-RPC registries:
      - .add_method(name, fn)
      - .add(name, fn)
      - .register(name, fn)
      - .method(name)(fn)
    """
    for attr in ("add_method", "add", "register"):
        if hasattr(registry, attr):
            getattr(registry, attr)(name, fn)
            return
    if hasattr(registry, "method"):
        getattr(registry, "method")(name)(fn)
        return
    raise TypeError("Unsupported JSON-RPC registry; expected add_method/add/register/method")


def _bind_jsonrpc(service: BrokerService, rpc_registry: Any) -> None:
    for name, handler in RPC_METHODS.items():
        def _call(_h: Any = handler, **params: Any) -> Any:
            return _h(service, params)

        _rpc_register(rpc_registry, name, _call)


# --------------------------------------------------------------------------------------
# Mount helper
# --------------------------------------------------------------------------------------

def mount_broker_rpc(
    app: FastAPI,
    *,
    service: BrokerService,
    rpc_registry: Optional[Any] = None,
    rest_prefix: str = "/broker",
) -> None:
    """
    Mount REST and JSON-RPC endpoints on the given FastAPI app.

    Parameters
    ----------
    app : FastAPI
        The main application instance.
    service : BrokerService
        Serialized broker wrapper.
    rpc_registry : Optional[Any]
        If provided, the methods in RPC_METHODS are also registered via a
        duck-typed `.add_method/.add/.register/.method` API.
    rest_prefix : str
        Prefix for REST endpoints (default: '/broker').
    """
    app.include_router(get_router(service, prefix=rest_prefix))
    if rpc_registry is not None:
        _bind_jsonrpc(service, rpc_registry)
    logger.info("broker endpoints mounted at %s", rest_prefix)


def create_app(service: BrokerService, *, metrics_path: Optional[str] = "/metrics") -> FastAPI:
    """Standalone app: broker routes plus a Prometheus scrape endpoint."""
    app = FastAPI(title="randbroker", version=__version__)
    mount_broker_rpc(app, service=service)
    if metrics_path:
        app.mount(metrics_path, make_asgi_app())
    return app


__all__ = ["mount_broker_rpc", "get_router", "create_app"]
