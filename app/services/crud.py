"""Generic CRUD manager utilities for service-layer boilerplate reduction."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar, cast

from fastapi import HTTPException

from app.services.common import coerce_uuid
from app.services.response import ListResponseMixin

TModel = TypeVar("TModel")


class CRUDManager(ListResponseMixin, Generic[TModel]):
    """Shared lookup and payload primitives for model-backed services."""

    model: type[TModel] | None = None
    not_found_detail: str = "Resource not found"

    @classmethod
    def _require_model(cls) -> type[TModel]:
        if cls.model is None:
            raise RuntimeError(f"{cls.__name__}.model must be set")
        return cls.model

    @classmethod
    def _payload_dict(cls, payload: Any, *, exclude_unset: bool) -> dict[str, Any]:
        if hasattr(payload, "model_dump"):
            dumped = payload.model_dump(exclude_unset=exclude_unset)
            return cast(dict[str, Any], dumped)
        if isinstance(payload, Mapping):
            return dict(payload)
        return dict(payload)

    @classmethod
    def _get_or_404(cls, db, entity_id):
        model = cls._require_model()
        entity = db.get(model, coerce_uuid(entity_id))
        if not entity:
            raise HTTPException(status_code=404, detail=cls.not_found_detail)
        return entity

    @classmethod
    def get(cls, db, entity_id):
        return cls._get_or_404(db, entity_id)
