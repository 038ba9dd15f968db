from sqlalchemy import BigInteger, Boolean, Column, DateTime, String, Text, func

from app.core.database import Base


class ShopifySession(Base):
    """Persisted Shopify auth session (one offline session per shop)."""

    __tablename__ = "shopify_sessions"

    id = Column(String(255), primary_key=True)
    shop = Column(String(255), index=True, nullable=False)
    state = Column(String(255), nullable=False, default="")
    is_online = Column(Boolean, nullable=False, default=False)
    scope = Column(Text, nullable=True)
    expires = Column(DateTime(timezone=True), nullable=True)
    access_token = Column(Text, nullable=False)
    user_id = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
