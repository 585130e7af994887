import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import jwt_handler
from backend.database import SessionLocal
from backend.models.user import User
from backend.scheduling.repository import SqlAlchemyRepository
from backend.scheduling.state_machine import ROLE_DOCTOR, Actor

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
    finally:
        db.close()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    doctor_id = None
    if current_user.role == ROLE_DOCTOR:
        db = SessionLocal()
        try:
            doctor = SqlAlchemyRepository(db).find_doctor_by_user(current_user.id)
        finally:
            db.close()
        if doctor is None:
            raise HTTPException(status_code=404, detail="Doctor profile not found")
        doctor_id = doctor.id
    return Actor(actor_id=current_user.id, role=current_user.role, doctor_id=doctor_id)
