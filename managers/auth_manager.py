from fastapi import HTTPException, Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import List, Literal, TypedDict, cast
import jwt
import os
import logging

logger = logging.getLogger(__name__)


class JWTPayload(TypedDict, total=False):
    sub: str
    name: str
    scp: str
    emails: List[str]
    exp: int
    nbf: int
    iat: int
    iss: str
    aud: str


Scope = Literal[
    "orders.read",
    "orders.admin",
]


def verify_jwt_token(jwt_token: str) -> JWTPayload:
    """管理画面が発行したHS256トークンを検証する"""
    secret = os.getenv("ADMIN_JWT_SECRET")
    if not secret:
        raise ValueError("ADMIN_JWT_SECRET環境変数が設定されていません")

    audience = os.getenv("ADMIN_JWT_AUDIENCE")
    try:
        decoded = jwt.decode(
            jwt_token,
            secret,
            algorithms=["HS256"],
            audience=audience,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_aud": audience is not None,
            },
        )
        return cast(JWTPayload, decoded)

    except jwt.exceptions.InvalidTokenError as e:
        logger.warning("Token validation error: %s", e)
        raise HTTPException(
            status_code=401,
            detail=f"不正なトークンです: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


# セキュリティスキーマ
security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(security),
) -> JWTPayload:
    """
    トークンを検証して現在のユーザー情報を取得
    """
    try:
        return verify_jwt_token(credentials.credentials)
    except ValueError as e:
        raise HTTPException(
            status_code=401,
            detail=f"認証エラー: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def requires_scope(required_scope: Scope):
    """
    特定のスコープが必要なエンドポイント用の依存関数
    """

    def scope_validator(token_data: JWTPayload = Depends(get_current_user)):
        scopes = token_data.get("scp", "").split()
        if required_scope not in scopes and "orders.admin" not in scopes:
            raise HTTPException(
                status_code=403,
                detail=f"アクセス権限がありません。必要なスコープ: {required_scope}",
            )
        return token_data

    return scope_validator
