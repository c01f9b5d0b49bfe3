from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.schemas import ApiResponse, LoginRequest, RegisterRequest
from conduit.services import auth_service

router = APIRouter(prefix=settings.API_PREFIX, tags=["auth"])


@router.post("/users", status_code=201, response_model=ApiResponse)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    result = await auth_service.register(db, data)
    return {"status": "success", "message": "register successful", "result": result}


@router.post("/login", response_model=ApiResponse)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await auth_service.login(db, data)
    return {"status": "success", "message": "Login successful", "result": result}
