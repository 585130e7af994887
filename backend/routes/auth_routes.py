from fastapi import APIRouter, Depends

from backend.auth.dependencies import get_current_actor, get_current_user
from backend.models.user import User
from backend.scheduling.state_machine import Actor

router = APIRouter(tags=["auth"])


@router.get("/me")
def me(
    current_user: User = Depends(get_current_user),
    actor: Actor = Depends(get_current_actor),
):
    return {
        "id": current_user.id,
        "email": current_user.email,
        "name": current_user.name,
        "role": current_user.role,
        "doctor_id": actor.doctor_id,
    }
