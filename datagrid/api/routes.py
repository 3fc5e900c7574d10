from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from datagrid.api.security import require_csrf_token
from datagrid.core.config import settings
from datagrid.models.actions import (
    CheckImportResult,
    DeleteRequest,
    ExecuteImportRequest,
    ExecuteImportResult,
    ExportRequest,
    ListRequest,
    Outcome,
    SaveRequest,
)
from datagrid.models.errors import ConfigurationError, ErrorResponse
from datagrid.services import option_resolver, query_executor
from datagrid.services.csrf import token_store
from datagrid.services.grid_engine import GridEngine

router = APIRouter()

MODULE_ERRORS = {404: {"model": ErrorResponse}}
WRITE_ERRORS = {403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}

def _engine(module: str) -> GridEngine:
    try:
        return GridEngine(module)
    except ConfigurationError:
        raise HTTPException(status_code=404, detail="Module not found")

@router.get("/csrf-token")
def get_csrf_token(request: Request):
    session_id, token = token_store.issue(request.cookies.get(settings.SESSION_COOKIE_NAME))
    response = JSONResponse({"token": token, "header": settings.CSRF_HEADER_NAME})
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
    )
    return response

@router.get("/config/{module}", responses=MODULE_ERRORS)
def get_config(module: str):
    return _engine(module).get_config()

@router.get("/options")
def get_all_options(sources: str = Query("")):
    resolved = option_resolver.resolve_many(sources)
    return {source: [item.model_dump() for item in items] for source, items in resolved.items()}

@router.post("/list", responses=MODULE_ERRORS)
def list_records(request: ListRequest):
    engine = _engine(request.module)
    result = engine.list(
        table=request.table,
        sort=request.sort,
        direction=request.dir,
        filters=request.filters,
        page=request.page,
        limit=request.limit,
        export=request.export,
    )
    body = query_executor.to_response(result)
    if result.error and not result.paginated:
        # A flat list has nowhere to carry the error
        return JSONResponse(body, headers={"X-Grid-Error": "storage"})
    return body

@router.post(
    "/save",
    response_model=Outcome,
    response_model_exclude_none=True,
    responses=WRITE_ERRORS,
    dependencies=[Depends(require_csrf_token)],
)
def save_record(request: SaveRequest):
    return _engine(request.module).save(request.id, request.data, table=request.table)

@router.post(
    "/delete",
    response_model=Outcome,
    response_model_exclude_none=True,
    responses=WRITE_ERRORS,
    dependencies=[Depends(require_csrf_token)],
)
def delete_record(request: DeleteRequest):
    return _engine(request.module).delete(request.id)

@router.post(
    "/import/check",
    response_model=CheckImportResult,
    response_model_exclude_none=True,
    response_model_by_alias=True,
    responses=WRITE_ERRORS,
    dependencies=[Depends(require_csrf_token)],
)
def check_import(
    module: str = Form(...),
    file: UploadFile = File(...),
):
    return _engine(module).check_import(file)

@router.post(
    "/import/execute",
    response_model=ExecuteImportResult,
    response_model_exclude_none=True,
    responses=WRITE_ERRORS,
    dependencies=[Depends(require_csrf_token)],
)
def execute_import(request: ExecuteImportRequest):
    return _engine(request.module).execute_import(request.temp_file)

@router.post("/export", responses=MODULE_ERRORS)
def export_csv(request: ExportRequest):
    engine = _engine(request.module)
    content = engine.export_csv(sort=request.sort, direction=request.dir, filters=request.filters)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="export_{engine.schema.table_name}.csv"'},
    )
