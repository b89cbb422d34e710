from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ... import crud
from ...errors import NotFoundError
from ...schemas import LoginRequest, UserCreate, UserRead, UserUpdate
from ..deps import get_db, pagination_params

router = APIRouter(tags=["users"])


@router.get("/users", response_model=list[UserRead])
def list_users(pagination: tuple[int, int] = Depends(pagination_params), db: Session = Depends(get_db)):
    limit, offset = pagination
    return crud.list_users(db, skip=offset, limit=limit)


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(user: UserCreate, db: Session = Depends(get_db)):
    return crud.create_user(db, user)


@router.get("/users/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


@router.put("/users/{user_id}", response_model=UserRead)
def update_user(user_id: int, payload: UserUpdate, db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return crud.update_user(db, user, payload)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, db: Session = Depends(get_db)) -> None:
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    crud.delete_user(db, user)


@router.post("/auth/login", response_model=UserRead, tags=["auth"])
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    return crud.authenticate_user(db, credentials.username, credentials.password)
