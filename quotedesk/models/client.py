"""Client model."""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from quotedesk.database import Base, Id


class Client(Base):
    """Client (billing customer)."""

    __tablename__ = 'client'

    id = Column(Id, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    billing_address = Column(Text, nullable=True)
    shipping_address = Column(Text, nullable=True)
    tax_id = Column(String(50), nullable=True)  # GSTIN / VAT number
    contact_person = Column(String(200), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Id, ForeignKey('app_user.id'), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    owner = relationship('User', back_populates='clients')
    quotes = relationship('Quote', back_populates='client')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'billing_address': self.billing_address,
            'shipping_address': self.shipping_address,
            'tax_id': self.tax_id,
            'contact_person': self.contact_person,
            'active': self.active,
            'created_by': self.created_by,
        }

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}', active={self.active})>"
