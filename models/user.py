from enum import Enum

from sqlalchemy import Column, String, Integer, JSON
from sqlalchemy.types import Enum as SAEnum

from models.base_model import Base, BaseModel


class Role(str, Enum):
    ADMIN = "admin"
    MUA = "mua"
    CLIENT = "client"


class User(BaseModel, Base):
    __tablename__ = "users"

    username = Column(String(20), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        SAEnum(Role, name="user_role", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.CLIENT,
    )
    # Currently valid refresh tokens, oldest first
    refresh_tokens = Column(JSON, nullable=False, default=lambda: [])
    # Bumped by the ORM on every UPDATE; a write against a stale version fails
    token_version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": token_version}

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def __repr__(self):
        return f"<User username={self.username} role={getattr(self.role, 'value', self.role)}>"
