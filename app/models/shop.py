from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from app.core.database import Base


class Shop(Base):
    __tablename__ = "shops"

    id = Column(Integer, primary_key=True)
    shop_domain = Column(String(255), unique=True, index=True, nullable=False)
    shop_name = Column(String(255), nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    # trial / active / cancelled
    subscription_status = Column(String(50), nullable=False, default="trial")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    barbers = relationship("Barber", back_populates="shop", cascade="all, delete-orphan", passive_deletes=True)
    services = relationship("Service", back_populates="shop", cascade="all, delete-orphan", passive_deletes=True)
    appointments = relationship(
        "Appointment", back_populates="shop", cascade="all, delete-orphan", passive_deletes=True
    )
    inquiries = relationship("Inquiry", back_populates="shop", cascade="all, delete-orphan", passive_deletes=True)
