from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import models
from ..authorization import Capability, require_capability
from ..database import get_db

router = APIRouter(prefix="/admin", tags=["admin"])


class PlanUpdate(BaseModel):
    plan: models.Plan


@router.put("/users/{user_id}/plan")
def set_user_plan(
    user_id: int,
    update: PlanUpdate,
    admin: models.User = Depends(require_capability(Capability.ADMIN)),
    db: Session = Depends(get_db),
):
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    user.plan = update.plan.value
    db.commit()
    return {"id": user.id, "email": user.email, "plan": user.plan}
