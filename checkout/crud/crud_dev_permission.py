# checkout/crud/crud_dev_permission.py
from sqlalchemy.orm import Session

from checkout.crud.base import CRUDBase
from checkout.models.dev_permission import DevPermission


class CRUDDevPermission(CRUDBase[DevPermission]):

    def is_dev(self, db: Session, *, discord_id: str) -> bool:
        if not discord_id:
            return False
        row = self.get(db, discord_id)
        return bool(row and row.dev)


dev_permission = CRUDDevPermission(DevPermission)
