"""
认证服务
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from of_core.config import get_settings
from of_core.database import get_db_manager
from of_core.models import Tenant, User
from of_core.utils.logger import get_logger
from of_core.utils.errors import ConflictError, UnauthorizedError, ValidationError

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 8


class AuthService:
    """认证服务"""

    def __init__(self):
        self.settings = get_settings()
        self.access_token_expire = timedelta(minutes=self.settings.access_token_expire_minutes)
        self.algorithm = self.settings.algorithm

    # ========== 密码处理 ==========

    def hash_password(self, password: str) -> str:
        """哈希密码"""
        # 确保密码不超过72字节（bcrypt限制）
        password_bytes = password.encode('utf-8')[:72]
        salt = bcrypt.gensalt(rounds=self.settings.bcrypt_rounds)
        return bcrypt.hashpw(password_bytes, salt).decode('utf-8')

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """验证密码"""
        password_bytes = plain_password.encode('utf-8')[:72]
        try:
            return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))
        except ValueError:
            logger.warning("Malformed password hash")
            return False

    # ========== JWT处理 ==========

    def create_access_token(self, user: User) -> str:
        """创建访问令牌"""
        to_encode = {
            "sub": str(user.id),
            "tenant_id": user.tenant_id,
            "role": user.role,
            "email": user.email,
            "exp": datetime.now(timezone.utc) + self.access_token_expire,
            "type": "access",
            "jti": str(uuid4()),
        }
        return jwt.encode(to_encode, self.settings.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> Dict[str, Any]:
        """解码JWT令牌"""
        try:
            payload = jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.algorithm]
            )
        except JWTError as e:
            raise UnauthorizedError(
                code="INVALID_TOKEN",
                detail=f"Token validation failed: {str(e)}"
            )

        if payload.get("type") != "access" or "tenant_id" not in payload or "sub" not in payload:
            raise UnauthorizedError(
                code="INVALID_TOKEN",
                detail="Token is not an access token"
            )
        return payload

    def _login_payload(self, user: User) -> Dict[str, Any]:
        return {
            "access_token": self.create_access_token(user),
            "token_type": "bearer",
            "expires_in": int(self.access_token_expire.total_seconds()),
            "user": user.to_dict(),
        }

    # ========== 注册与登录 ==========

    async def register(self, email: str, password: str, name: str, tenant_name: str) -> Dict[str, Any]:
        """注册新租户及其 OWNER 账号（同一事务）"""
        email = email.strip().lower()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                code="WEAK_PASSWORD",
                detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        password_hash = self.hash_password(password)
        db_manager = get_db_manager()

        try:
            async with db_manager.get_transaction() as session:
                existing = await session.execute(select(User.id).where(User.email == email))
                if existing.first() is not None:
                    raise ConflictError(
                        code="EMAIL_EXISTS",
                        detail="A user with this email already exists"
                    )

                tenant = Tenant(name=tenant_name.strip())
                session.add(tenant)
                await session.flush()

                user = User(
                    tenant_id=tenant.id,
                    email=email,
                    name=name.strip(),
                    password_hash=password_hash,
                    role="OWNER"
                )
                session.add(user)
                await session.flush()
        except IntegrityError:
            # 并发注册同一邮箱
            raise ConflictError(
                code="EMAIL_EXISTS",
                detail="A user with this email already exists"
            )

        logger.info("Registered tenant", tenant_id=tenant.id, user_id=user.id)
        return self._login_payload(user)

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """校验邮箱和密码，失败返回 None"""
        db_manager = get_db_manager()

        async with db_manager.get_session() as session:
            result = await session.execute(
                select(User).where(User.email == email.strip().lower())
            )
            user = result.scalar_one_or_none()

        if user is None or not self.verify_password(password, user.password_hash):
            return None
        return user

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """登录，返回访问令牌和用户信息"""
        user = await self.authenticate_user(email, password)
        if user is None:
            logger.warning("Login failed")
            raise UnauthorizedError(
                code="INVALID_CREDENTIALS",
                detail="Invalid email or password"
            )

        logger.info("User logged in", user_id=user.id, tenant_id=user.tenant_id)
        return self._login_payload(user)


_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """获取认证服务单例"""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service


def reset_auth_service() -> None:
    global _auth_service
    _auth_service = None
