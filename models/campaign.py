# models/campaign.py
"""
Campaign model - the fund record every donation counts against.
"""
from sqlalchemy import Column, Integer, String, Text, DECIMAL, DateTime
from decimal import Decimal
from models.base import Base, AuditMixin


class Campaign(Base, AuditMixin):
    __tablename__ = 'campaigns'

    campaignID = Column(String, primary_key=True)

    # Campaign details
    campaignTitle = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    goalAmount = Column(DECIMAL(12, 2), nullable=True)
    startDate = Column(DateTime, nullable=True)
    endDate = Column(DateTime, nullable=True)
    organizerName = Column(String, nullable=True)
    initialStatus = Column(String, default="active")  # draft, upcoming, active

    # Counters - written only by ledger_system services
    raisedAmount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0"))
    likeCount = Column(Integer, nullable=False, default=0)
    supportCount = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Campaign(campaignID={self.campaignID}, raised={self.raisedAmount})>"
