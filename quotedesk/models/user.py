"""User model - application users with email/password authentication."""
import enum
from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from quotedesk.database import Base, Id, enum_values


class UserRole(enum.Enum):
    """User roles, from most to least privileged."""
    ADMIN = 'admin'
    MANAGER = 'manager'
    USER = 'user'
    VIEWER = 'viewer'


class UserStatus(enum.Enum):
    """Account status."""
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class User(Base):
    """User model."""

    __tablename__ = 'app_user'

    id = Column(Id, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    backup_email = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    role = Column(Enum(UserRole, name='user_role', values_callable=enum_values), nullable=False, default=UserRole.USER)
    status = Column(Enum(UserStatus, name='user_status', values_callable=enum_values), nullable=False, default=UserStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    clients = relationship('Client', back_populates='owner')
    quotes = relationship('Quote', back_populates='owner')

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_active(self):
        return self.status == UserStatus.ACTIVE

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role.value,
            'status': self.status.value,
        }

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value if self.role else None}')>"
