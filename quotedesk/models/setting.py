"""Setting model - key/value application settings."""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from quotedesk.database import Base, Id


class Setting(Base):
    """Runtime setting editable by admins (prefixes, payment terms, company info)."""

    __tablename__ = 'setting'

    id = Column(Id, primary_key=True, autoincrement=True)
    key = Column(String(100), nullable=False, unique=True)
    value = Column(Text, nullable=False)
    updated_by = Column(Id, ForeignKey('app_user.id'), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Setting(key='{self.key}', value='{self.value}')>"
