"""
User database model.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum
from parcelflow.app.db.session import Base
from parcelflow.app.models.enums import UserRole, enum_values
from parcelflow.app.core.timeutils import utcnow


class User(Base):
    """
    Platform account, keyed by the email the identity provider vouches for.

    Role starts as USER. It becomes RIDER exactly once, when the rider
    application with the same email is approved.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    photo_url = Column(String(500), nullable=True)

    role = Column(
        Enum(UserRole, name="user_role", values_callable=enum_values),
        default=UserRole.USER,
        nullable=False,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
