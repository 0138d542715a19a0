import json
from typing import Annotated, Any, Dict, List

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from dbgateway.common.errors import InvalidRequestError
from dbgateway.generation.models import EndpointDescriptor
from .dependencies import get_database_service
from .models import GenerateAPIRequest
from .service import DatabaseService

router = APIRouter()

DatabaseSvc = Annotated[DatabaseService, Depends(get_database_service)]

DISPATCH_METHODS = ["GET", "POST", "PUT", "DELETE"]


@router.post("/generate-api", response_model=List[EndpointDescriptor])
def generate_api(
    payload: GenerateAPIRequest,
    service: DatabaseSvc,
):
    return service.generate_api(payload)


async def _read_json_body(request: Request) -> Any:
    if not await request.body():
        return None
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequestError(f"Invalid request: malformed JSON body: {e}") from e


@router.api_route("/{path:path}", methods=DISPATCH_METHODS)
async def dispatch(
    path: str,
    request: Request,
    service: DatabaseSvc,
):
    body = await _read_json_body(request) if request.method in ("POST", "PUT") else None
    query_params: Dict[str, str] = {
        key: request.query_params.getlist(key)[0] for key in request.query_params.keys()
    }
    return await run_in_threadpool(service.dispatch, request.method, path, query_params, body)
