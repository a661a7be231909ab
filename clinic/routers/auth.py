"""
认证路由 - 注册、邮箱验证、登录
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from clinic.models.ontology import User
from clinic.models.schemas import (
    UserRegister, VerifyCodeRequest, ResendCodeRequest, LoginRequest, Token, UserResponse
)
from clinic.dependencies import get_user_service
from clinic.services.user_service import UserService
from clinic.security.auth import create_access_token, get_current_user

router = APIRouter(prefix="/auth", tags=["认证"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(data: UserRegister, service: UserService = Depends(get_user_service)):
    """注册并发送验证邮件"""
    return service.register(data)


@router.post("/verify-code", response_model=UserResponse)
def verify_code(data: VerifyCodeRequest, service: UserService = Depends(get_user_service)):
    """验证码验证邮箱"""
    return service.verify_code(data.email, data.code)


@router.get("/verify-email", response_model=UserResponse)
def verify_email(
    token: str = Query(..., min_length=1),
    service: UserService = Depends(get_user_service)
):
    """验证链接验证邮箱"""
    return service.verify_token(token)


@router.post("/resend-code")
def resend_code(data: ResendCodeRequest, service: UserService = Depends(get_user_service)):
    """重新发送验证码"""
    service.resend_code(data.email)
    return {"message": "验证码已重新发送"}


@router.post("/login", response_model=Token)
def login(data: LoginRequest, service: UserService = Depends(get_user_service)):
    """用户登录"""
    user = service.authenticate(data.email, data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="邮箱或密码错误"
        )
    return Token(access_token=create_access_token(user.id), user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """获取当前用户信息"""
    return current_user
