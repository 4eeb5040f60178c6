# models/reaction.py
"""
CampaignReaction model - existence of a row means the user has reacted.
"""
from sqlalchemy import Column, String, DateTime
from datetime import datetime, timezone
from models.base import Base


class CampaignReaction(Base):
    __tablename__ = 'campaign_reactions'

    # Composite key doubles as the uniqueness constraint
    campaignID = Column(String, primary_key=True)
    userID = Column(String, primary_key=True)
    reactionType = Column(String, primary_key=True)  # like, support

    createdAt = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<CampaignReaction({self.campaignID}, {self.userID}, {self.reactionType})>"
