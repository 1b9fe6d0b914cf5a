"""
Nutrition Portal - Bearer Token Revocation

Bearer tokens are stateless; logout records the token ID here so the
request gate can refuse it afterwards.

Security:
- Logout immediately invalidates the presented token
- Other tokens of the same account keep working until revoked
"""

from sqlmodel import Session as DBSession, select

from nutrition_portal.auth.models import RevokedToken, utcnow


async def revoke_token(db: DBSession, jti: str, user_id: int) -> bool:
    """
    Revoke a token by its jti.

    Returns:
        True if newly revoked, False if it was already revoked
    """
    if db.get(RevokedToken, jti) is not None:
        return False

    db.add(RevokedToken(jti=jti, user_id=user_id, revoked_at=utcnow()))
    db.commit()
    return True


async def is_revoked(db: DBSession, jti: str) -> bool:
    """Check whether a token ID has been revoked."""
    statement = select(RevokedToken.jti).where(RevokedToken.jti == jti)
    return db.exec(statement).first() is not None
