# checkout/schemas/dev.py
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class DevAction(str, Enum):
    approve = "approve"
    reject = "reject"
    expire = "expire"


DEV_ACTION_STATUS = {
    DevAction.approve: "approved",
    DevAction.reject: "rejected",
    DevAction.expire: "expired",
}


class DevStatusRequest(BaseModel):
    """Body of POST /api/pagment/dev."""

    model_config = ConfigDict(extra="ignore")

    action: DevAction
    kind: Optional[str] = None
    status_detail: str = ""

    @field_validator("kind", mode="before")
    @classmethod
    def known_kind(cls, v: Any) -> Optional[str]:
        return v if v in ("pix", "boleto", "card") else None

    @field_validator("status_detail", mode="before")
    @classmethod
    def clean_detail(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, (str, int, float, bool)):
            return str(v)[:200]
        return ""
