"""Tax rate preset model - named regional tax splits quotes can apply."""
from decimal import Decimal
from sqlalchemy import Column, String, Numeric, Date, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from quotedesk.database import Base, Id

# Component columns in the order their tax lines are produced
COMPONENTS = (('CGST', 'cgst_rate'), ('SGST', 'sgst_rate'), ('IGST', 'igst_rate'))


class TaxRatePreset(Base):
    """
    Tax rates for a region, e.g. intra-state CGST 9% + SGST 9%.

    Several presets may exist for a region; the active one with the latest
    `effective_from` wins.
    """

    __tablename__ = 'tax_rate_preset'

    id = Column(Id, primary_key=True, autoincrement=True)
    region = Column(String(100), nullable=False, index=True)
    tax_type = Column(String(50), nullable=False, default='GST')
    cgst_rate = Column(Numeric(6, 3), nullable=False, default=0)
    sgst_rate = Column(Numeric(6, 3), nullable=False, default=0)
    igst_rate = Column(Numeric(6, 3), nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    effective_from = Column(Date, nullable=False)
    created_by = Column(Id, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def tax_rates(self):
        """(name, rate) pairs for the non-zero components."""
        rates = []
        for name, attr in COMPONENTS:
            rate = Decimal(getattr(self, attr) or 0)
            if rate:
                rates.append((name, rate))
        return rates

    def to_dict(self):
        return {
            'id': self.id,
            'region': self.region,
            'tax_type': self.tax_type,
            'cgst_rate': str(self.cgst_rate),
            'sgst_rate': str(self.sgst_rate),
            'igst_rate': str(self.igst_rate),
            'active': self.active,
            'effective_from': self.effective_from.isoformat(),
            'tax_rates': [{'name': name, 'rate': str(rate)} for name, rate in self.tax_rates()],
        }

    def __repr__(self):
        return f"<TaxRatePreset(id={self.id}, region='{self.region}', active={self.active})>"
