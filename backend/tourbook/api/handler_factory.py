"""
Generic resource operations.

Each factory returns a FastAPI endpoint bound to one repository class and its
schemas. Endpoints only talk to the `Repository` interface; anything
resource-specific goes through the optional hooks:

    scope(request)           -> extra criteria for get_all (nested routes)
    defaults(request, data)  -> fill request data before create (route/principal)
    on_change()              -> run after a successful write (cache invalidation)
"""

from typing import Any, Awaitable, Callable, Iterable, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core.errors import NotFoundError
from tourbook.db.session import get_db
from tourbook.services.query_features import VERSION_FIELD

ScopeHook = Callable[[Request], list]
DefaultsHook = Callable[[Request, dict], dict]
ChangeHook = Callable[[], Awaitable[None]]


def _drop_version(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _drop_version(item) for key, item in value.items() if key != VERSION_FIELD}
    if isinstance(value, list):
        return [_drop_version(item) for item in value]
    return value


def serialize(schema: type[BaseModel], entity: Any) -> dict:
    """Dump one entity, without the version counter at any depth."""
    return _drop_version(schema.model_validate(entity).model_dump(mode="json"))


def document_response(document: dict) -> dict:
    return {"status": "success", "data": {"doc": document}}


def _not_found(entity_id: int) -> NotFoundError:
    return NotFoundError(f"No document found with that ID: {entity_id}")


def create_one(
    repo_class,
    schema_in: type[BaseModel],
    schema_out: type[BaseModel],
    defaults: Optional[DefaultsHook] = None,
    on_change: Optional[ChangeHook] = None,
):
    async def handler(request: Request, body: schema_in, db: AsyncSession = Depends(get_db)):
        data = body.model_dump(mode="json", exclude_none=True)
        if defaults:
            data = defaults(request, data)
        entity = await repo_class(db).create(data)
        if on_change:
            await on_change()
        return document_response(serialize(schema_out, entity))

    handler.__name__ = f"create_{repo_class.model.__tablename__}"
    return handler


def get_one(repo_class, schema_out: type[BaseModel], expand: Iterable[str] = ()):
    expand = tuple(expand)

    async def handler(id: int, db: AsyncSession = Depends(get_db)):
        entity = await repo_class(db).find_by_id(id, expand=expand)
        if entity is None:
            raise _not_found(id)
        return document_response(serialize(schema_out, entity))

    handler.__name__ = f"get_{repo_class.model.__tablename__}"
    return handler


def get_all(
    repo_class,
    schema_out: type[BaseModel],
    scope: Optional[ScopeHook] = None,
    overrides: Optional[dict[str, str]] = None,
):
    async def handler(request: Request, db: AsyncSession = Depends(get_db)):
        params = {key: request.query_params.getlist(key) for key in request.query_params.keys()}
        for key, value in (overrides or {}).items():
            params[key] = [value]
        criteria = scope(request) if scope else []

        docs, features = await repo_class(db).find_all(params, *criteria)
        documents = [features.project(schema_out.model_validate(doc).model_dump(mode="json")) for doc in docs]
        return {"status": "success", "results": len(documents), "data": {"docs": documents}}

    handler.__name__ = f"list_{repo_class.model.__tablename__}"
    return handler


def update_one(
    repo_class,
    schema_in: type[BaseModel],
    schema_out: type[BaseModel],
    on_change: Optional[ChangeHook] = None,
):
    async def handler(id: int, body: schema_in, db: AsyncSession = Depends(get_db)):
        data = body.model_dump(mode="json", exclude_unset=True)
        entity = await repo_class(db).update_by_id(id, data)
        if entity is None:
            raise _not_found(id)
        if on_change:
            await on_change()
        return document_response(serialize(schema_out, entity))

    handler.__name__ = f"update_{repo_class.model.__tablename__}"
    return handler


def delete_one(repo_class, on_change: Optional[ChangeHook] = None):
    async def handler(id: int, db: AsyncSession = Depends(get_db)):
        if not await repo_class(db).delete_by_id(id):
            raise _not_found(id)
        if on_change:
            await on_change()
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    handler.__name__ = f"delete_{repo_class.model.__tablename__}"
    return handler


def collection_route(router: APIRouter, method: str, endpoint, **kwargs):
    """Register a collection endpoint at both `/prefix/` and `/prefix`."""
    router.add_api_route("/", endpoint, methods=[method], **kwargs)
    router.add_api_route("", endpoint, methods=[method], include_in_schema=False, **kwargs)
    return endpoint
