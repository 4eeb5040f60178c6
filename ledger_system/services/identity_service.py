# ledger_system/services/identity_service.py
"""
Identity/role store - profiles, admin checks and caller contexts.
"""
from typing import Optional
from sqlalchemy.orm import Session
import logging

import config
from models import UserProfile
from ledger_system.auth import CallerContext
from ledger_system.config.statuses import Role
from ledger_system.utils.transaction_runner import runOptimistic

logger = logging.getLogger(__name__)


class IdentityService:
    """Read access to user profiles and the caller contexts built from them."""

    def __init__(self, session: Session):
        self.session = session

    def getProfile(self, userId: str) -> Optional[UserProfile]:
        return self.session.query(UserProfile).filter_by(uid=userId).first()

    def isAdmin(self, userId: str) -> bool:
        profile = self.getProfile(userId)
        return bool(profile and profile.isAdmin)

    def getCallerContext(self, userId: str) -> CallerContext:
        """Build the authorization context for a verified user id."""
        profile = self.getProfile(userId)
        if not profile:
            logger.debug(f"No profile for {userId}, using plain user role")
            return CallerContext(userId=userId, role=Role.USER)

        role = Role.ADMIN if profile.isAdmin else Role.USER
        return CallerContext(userId=userId, role=role)

    async def ensureProfile(
            self,
            uid: str,
            email: Optional[str] = None,
            displayName: Optional[str] = None,
            mobileNumber: Optional[str] = None,
            wardNo: Optional[str] = None
    ) -> UserProfile:
        """
        Return the profile for uid, creating it on first sight.
        The configured admin e-mail gets the admin role on creation.
        """

        async def work(startedAt):
            profile = self.getProfile(uid)
            if profile:
                return profile

            role = Role.ADMIN if email and email == config.ADMIN_EMAIL else Role.USER
            profile = UserProfile(
                uid=uid,
                email=email,
                displayName=displayName,
                mobileNumber=mobileNumber,
                wardNo=wardNo,
                role=role.value,
                status="Active",
                lastLoginDate=startedAt
            )
            self.session.add(profile)
            logger.info(f"Created profile {uid} with role {role.value}")
            return profile

        return await runOptimistic(self.session, work, label=f"ensureProfile[{uid}]")
