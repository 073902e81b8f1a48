from sqlalchemy import Column, String, Float, Date, Time, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from db.extensions import db
from datetime import datetime
import uuid

from services.utils import format_hhmm


class Reservation(db.Model):
    __tablename__ = 'reservations'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(64), nullable=False, index=True)
    # Cleared when an unreserved slot is deleted; the copied fields below keep the history
    slot_id = Column(String(36), ForeignKey('time_slots.id', ondelete='SET NULL'), nullable=True, index=True)

    # Copied from the slot at creation time for reporting
    gig_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration = Column(Float, nullable=False)

    status = Column(
        db.Enum('reserved', 'cancelled', name='reservation_status_enum'),
        nullable=False,
        default='reserved'
    )
    notes = Column(String(1000), nullable=True)
    reserved_at = Column(DateTime, default=datetime.utcnow)
    cancelled_at = Column(DateTime, nullable=True)

    slot = relationship('TimeSlot', back_populates='reservations')

    # One active seat per agent per slot
    __table_args__ = (
        Index(
            'uq_active_reservation_per_agent', 'slot_id', 'agent_id',
            unique=True,
            postgresql_where=text("status = 'reserved'"),
            sqlite_where=text("status = 'reserved'"),
        ),
    )

    def __repr__(self):
        return f"<Reservation agent_id={self.agent_id} slot_id={self.slot_id} status={self.status}>"

    def to_summary(self):
        """Embedded shape used inside a slot's ``reservations`` list."""
        return {
            'id': self.id,
            'agentId': self.agent_id,
            'notes': self.notes,
            'reservedAt': self.reserved_at.isoformat() if self.reserved_at else None,
            'status': self.status,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'agentId': self.agent_id,
            'slotId': self.slot_id,
            'gigId': self.gig_id,
            'date': self.date.isoformat(),
            'startTime': format_hhmm(self.start_time),
            'endTime': format_hhmm(self.end_time),
            'duration': self.duration,
            'status': self.status,
            'notes': self.notes,
            'reservedAt': self.reserved_at.isoformat() if self.reserved_at else None,
        }
