# src/wallet_session/models/session_request.py
"""Log of session requests used for rate limiting."""

from sqlalchemy import BigInteger, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from wallet_session.db.session import Base


class SessionRequestLog(Base):
    """One row per accepted session request for a (salt, alias) pair."""

    __tablename__ = "session_request"
    __table_args__ = (Index("ix_session_request_salt_alias", "salt", "alias", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    salt: Mapped[str] = mapped_column(Text, nullable=False)
    alias: Mapped[str] = mapped_column(Text, nullable=False)
    # Unix seconds; windows are evaluated against the protocol clock.
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
