"""SQLAlchemy models for the credential store."""

from sqlalchemy import BigInteger, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from geogate.db.base import Base


class CredentialRecord(Base):
    """One issued API key together with its quota policy and usage counters."""

    __tablename__ = "credentials"

    api_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    rate_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Epoch milliseconds
    window_start: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint("rate_limit > 0", name="ck_credentials_rate_limit_positive"),
        CheckConstraint("count >= 0", name="ck_credentials_count_non_negative"),
    )

    def __repr__(self) -> str:
        return f"CredentialRecord({self.name}, {self.count}/{self.rate_limit})"
