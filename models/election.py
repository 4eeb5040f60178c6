# models/election.py
"""
Election models - candidates, per-user votes and the control switch.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from datetime import datetime, timezone
from models.base import Base, AuditMixin


class ElectionCandidate(Base, AuditMixin):
    __tablename__ = 'election_candidates'

    candidateID = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    electionSymbol = Column(String, nullable=False)
    position = Column(String, nullable=False)  # President, GeneralSecretary
    imageUrl = Column(String, nullable=True)

    voteCount = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ElectionVote(Base):
    __tablename__ = 'election_votes'

    # One document per voter, one field per position
    userID = Column(String, primary_key=True)
    presidentCandidateID = Column(String, nullable=True)
    generalSecretaryCandidateID = Column(String, nullable=True)
    lastVotedAt = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ElectionControl(Base):
    __tablename__ = 'election_control'

    controlID = Column(String, primary_key=True, default="mainElection")
    resultsPublished = Column(Boolean, nullable=False, default=False)
    votingClosed = Column(Boolean, nullable=False, default=False)
    lastUpdated = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                         onupdate=lambda: datetime.now(timezone.utc))
