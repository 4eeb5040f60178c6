# models/user.py
"""
UserProfile model - identity, role and wallet balance of a member.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, DateTime
from decimal import Decimal
from models.base import Base, AuditMixin


class UserProfile(Base, AuditMixin):
    __tablename__ = 'user_profiles'

    # Identity provider uid
    uid = Column(String, primary_key=True)

    # Personal information
    displayName = Column(String, nullable=True)
    email = Column(String, nullable=True, index=True)
    mobileNumber = Column(String, nullable=True)  # С кодом страны, для WhatsApp
    wardNo = Column(String, nullable=True)

    # System fields
    role = Column(String, default="user")  # admin, user
    status = Column(String, default="Active")  # Active, Suspended, Pending Verification
    lastLoginDate = Column(DateTime, nullable=True)

    # Wallet
    walletBalance = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0"))

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def isAdmin(self) -> bool:
        return self.role == "admin"

    def __repr__(self):
        return f"<UserProfile(uid={self.uid}, role={self.role}, balance={self.walletBalance})>"
