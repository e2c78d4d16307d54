# checkout/api/endpoints/plan_features.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkout import crud
from checkout.api import deps
from checkout.schemas.plan_feature import PlanFeatureList

router = APIRouter(tags=["Plans"])


@router.get("/plan-features", response_model=PlanFeatureList)
def list_plan_features(db: Session = Depends(deps.get_db)):
    """Feature bullets for every plan, ordered by plan then position."""
    return PlanFeatureList(data=crud.plan_feature.get_all_ordered(db))
