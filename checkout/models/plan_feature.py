# checkout/models/plan_feature.py
from sqlalchemy import Column, String, Integer, Text
from checkout.db.base_class import Base


class PlanFeature(Base):
    __tablename__ = "plan_features"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plan_key = Column(String(20), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    feature_text = Column(Text, nullable=False)
