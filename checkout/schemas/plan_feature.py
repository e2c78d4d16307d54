# checkout/schemas/plan_feature.py
from typing import List

from pydantic import BaseModel, ConfigDict


class PlanFeature(BaseModel):
    plan_key: str
    position: int
    feature_text: str

    model_config = ConfigDict(from_attributes=True)


class PlanFeatureList(BaseModel):
    ok: bool = True
    data: List[PlanFeature]
