import json
from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from bucketbind.binding import Binding
from bucketbind.binding import Request as InvokeRequest
from bucketbind.errors import BindingError, NotFoundOrReadError, ValidationError

router = APIRouter()


@router.get("/health")
async def health() -> Response:
    return Response(status_code=200)


def get_binding(request: Request) -> Binding:
    return request.app.state.binding


@dataclass
class InvokeBody:
    operation: str
    data: Any = None
    metadata: dict[str, str] | None = None


def data_from_body(body: InvokeBody) -> bytes:
    # the binding receives ``data`` as raw JSON text, so strings arrive quoted;
    # non-ASCII stays literal since surrogate pair escapes do not unquote
    if body.data is None:
        return b""
    return json.dumps(body.data, ensure_ascii=False).encode()


@router.get("/operations")
async def operations(binding: Annotated[Binding, Depends(get_binding)]) -> list[str]:
    return [operation.value for operation in binding.operations()]


@router.post("/invoke")
async def invoke(
    body: InvokeBody,
    binding: Annotated[Binding, Depends(get_binding)],
) -> Response:
    result = await binding.invoke(
        InvokeRequest(operation=body.operation, data=data_from_body(body), metadata=body.metadata)
    )
    if result is None:
        return Response(status_code=204)
    headers = {f"metadata.{key}": value for key, value in (result.metadata or {}).items()}
    return Response(content=result.data, headers=headers)


def error_status(exc: BindingError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundOrReadError):
        return 404
    return 500


async def binding_error_handler(request: Request, exc: BindingError) -> JSONResponse:
    return JSONResponse(
        status_code=error_status(exc),
        content={"errorCode": type(exc).__name__, "message": str(exc)},
    )


def make_app(binding: Binding) -> FastAPI:
    app = FastAPI()
    app.include_router(router)
    app.state.binding = binding
    app.add_exception_handler(BindingError, binding_error_handler)
    return app
