"""
Repository interface and the generic SQLAlchemy implementation.

The generic resource operations only talk to `Repository`. Lifecycle work
(normalization, derived fields, aggregate recomputation) happens in explicit
steps the repository calls around each write:

    prepare(data, entity)  -> map request data onto column values
    before_save(entity)    -> derived fields (slug, rounding, ...)
    flush
    after_write(entity)    -> recompute aggregates on other rows
    before_delete(entity)  -> collect what the delete will cascade away
    after_delete(entity)   -> recompute aggregates, after a delete
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Iterable, Mapping, Optional, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core.errors import AppError, NotFoundError
from tourbook.services.query_features import QueryFeatures

ModelT = TypeVar("ModelT")


class Repository(ABC, Generic[ModelT]):
    """Capability interface consumed by the generic resource operations."""

    @abstractmethod
    async def create(self, data: dict) -> ModelT:
        ...

    @abstractmethod
    async def find_by_id(self, entity_id: int, expand: Iterable[str] = ()) -> Optional[ModelT]:
        ...

    @abstractmethod
    async def find_all(self, params: Mapping[str, Any], *criteria) -> tuple[list[ModelT], QueryFeatures]:
        ...

    @abstractmethod
    async def update_by_id(self, entity_id: int, data: dict) -> Optional[ModelT]:
        ...

    @abstractmethod
    async def delete_by_id(self, entity_id: int) -> bool:
        ...


class SQLAlchemyRepository(Repository[ModelT]):
    model: type
    # Columns that can never be filtered or sorted on from a query string
    hidden_fields: tuple[str, ...] = ()
    # Relation expansions available to find_by_id, name -> loader option
    expansions: dict[str, Any] = {}

    def __init__(self, db: AsyncSession):
        self.db = db

    # -- lifecycle steps -------------------------------------------------

    def scope(self) -> list:
        """Criteria applied to every default lookup (soft delete, secrecy)."""
        return []

    async def prepare(self, data: dict, entity: Optional[ModelT] = None) -> dict:
        return data

    async def before_save(self, entity: ModelT, is_new: bool) -> None:
        pass

    async def after_write(self, entity: ModelT) -> None:
        pass

    async def before_delete(self, entity: ModelT) -> None:
        pass

    async def after_delete(self, entity: ModelT) -> None:
        pass

    # -- queries ---------------------------------------------------------

    def base_query(self, *criteria) -> Select:
        return select(self.model).where(*self.scope(), *criteria)

    def _expansion_options(self, expand: Iterable[str]) -> list:
        options = []
        for name in expand:
            if name not in self.expansions:
                raise AppError(f"Cannot expand {name}.", 400)
            options.append(self.expansions[name])
        return options

    async def reload(self, entity_id: int, expand: Iterable[str] = ()) -> ModelT:
        statement = (
            select(self.model)
            .where(self.model.id == entity_id)
            .options(*self._expansion_options(expand))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(statement)
        return result.scalar_one()

    async def require(self, model, entity_id: int, label: str) -> int:
        """Check that a referenced row exists and return its id."""
        if await self.db.get(model, entity_id) is None:
            raise NotFoundError(f"No {label} found with that ID: {entity_id}")
        return entity_id

    async def find_one(self, *criteria) -> Optional[ModelT]:
        result = await self.db.execute(self.base_query(*criteria).limit(1))
        return result.scalar_one_or_none()

    async def find_by_id(self, entity_id: int, expand: Iterable[str] = ()) -> Optional[ModelT]:
        statement = self.base_query(self.model.id == entity_id).options(*self._expansion_options(expand))
        result = await self.db.execute(statement)
        return result.scalar_one_or_none()

    async def find_all(self, params: Mapping[str, Any], *criteria) -> tuple[list[ModelT], QueryFeatures]:
        features = (
            QueryFeatures(self.model, self.base_query(*criteria), params, hidden=self.hidden_fields)
            .filter()
            .sort()
            .limit_fields()
            .paginate()
        )
        result = await self.db.execute(features.statement)
        return list(result.scalars().all()), features

    # -- writes ----------------------------------------------------------

    def _apply(self, entity: ModelT, values: dict) -> None:
        for key, value in values.items():
            setattr(entity, key, value)

    async def create(self, data: dict) -> ModelT:
        values = await self.prepare(dict(data))
        entity = self.model()
        self._apply(entity, values)
        await self.before_save(entity, is_new=True)

        self.db.add(entity)
        await self.db.flush()
        await self.after_write(entity)
        return await self.reload(entity.id)

    async def save(self, entity: ModelT, data: dict) -> ModelT:
        """Apply an update to an already loaded entity."""
        values = await self.prepare(dict(data), entity)
        self._apply(entity, values)
        await self.before_save(entity, is_new=False)

        await self.db.flush()
        await self.after_write(entity)
        return await self.reload(entity.id)

    async def update_by_id(self, entity_id: int, data: dict) -> Optional[ModelT]:
        entity = await self.find_by_id(entity_id)
        if entity is None:
            return None
        return await self.save(entity, data)

    async def delete_by_id(self, entity_id: int) -> bool:
        entity = await self.find_by_id(entity_id)
        if entity is None:
            return False
        await self.before_delete(entity)
        await self.db.delete(entity)
        await self.db.flush()
        await self.after_delete(entity)
        return True
