# checkout/crud/crud_plan_feature.py
from typing import List

from sqlalchemy.orm import Session

from checkout.crud.base import CRUDBase
from checkout.models.plan_feature import PlanFeature


class CRUDPlanFeature(CRUDBase[PlanFeature]):

    def get_all_ordered(self, db: Session) -> List[PlanFeature]:
        return (
            db.query(self.model)
            .order_by(self.model.plan_key.asc(), self.model.position.asc())
            .all()
        )


plan_feature = CRUDPlanFeature(PlanFeature)
