# checkout/crud/base.py
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from checkout.db.base_class import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """Read helpers shared by every table accessor."""

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return db.get(self.model, id)
