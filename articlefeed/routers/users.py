from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from articlefeed.database import get_db
from articlefeed.errors import Conflict
from articlefeed.schemas import UserCreate, UserResponse
from articlefeed.services import user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post("", status_code=201, response_model=UserResponse)
async def create_user(data: UserCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await user_service.create_user(db, data)
    except IntegrityError:
        raise Conflict("A user with this username or email already exists")
