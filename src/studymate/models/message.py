"""Models describing messages exchanged inside a conversation."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from studymate.db.session import Base
from studymate.db.time import UTCDateTime, utcnow


class Message(Base):
    """Text message sent by one participant to the other.

    Only the delivery markers change after creation, and each is set once,
    by the recipient.
    """

    __tablename__ = "message"
    __table_args__ = (
        Index("ix_message_conversation_created", "conversation_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("conversation.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    delivered_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
