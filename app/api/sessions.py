from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_clinic, get_gateway
from app.clients.backend_api import BackendGateway
from app.core.config import ClinicConfig
from app.models.account import AuthSession, AuthUser
from app.services.auth import sign_in, sign_up

router = APIRouter()


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(BaseModel):
    email: str
    password: str
    full_name: str | None = None


@router.post("/auth/sign-in", response_model=AuthSession)
async def post_sign_in(
    body: SignInRequest,
    gateway: BackendGateway = Depends(get_gateway),
    clinic: ClinicConfig = Depends(get_clinic),
) -> AuthSession:
    """로그인"""
    return await sign_in(gateway, clinic, body.email, body.password)


@router.post("/auth/sign-up", response_model=AuthUser, status_code=201)
async def post_sign_up(
    body: SignUpRequest,
    gateway: BackendGateway = Depends(get_gateway),
    clinic: ClinicConfig = Depends(get_clinic),
) -> AuthUser:
    """신규 사용자 등록"""
    return await sign_up(gateway, clinic, body.email, body.password, body.full_name)
