# casri/models/users.py

from sqlalchemy import CheckConstraint, Column, Integer, String, DateTime
from sqlalchemy.sql import func

from casri.database import Base
from casri.core.constants import UserRole, sql_in


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)

    # ADMIN and EMPLOYEE may sell and purchase, ADMIN alone may delete ledger rows
    role = Column(String(20), nullable=False, default=UserRole.USER.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(f"role IN ({sql_in(UserRole)})", name="ck_user_role_valid"),
    )
