from sqlalchemy import Column, Integer, String, Float, Date, Time, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from db.extensions import db
from datetime import datetime
import uuid

from models.gig import Gig
from models.reservation import Reservation
from services.utils import format_hhmm, derive_status


class TimeSlot(db.Model):
    __tablename__ = 'time_slots'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    gig_id = Column(String(36), ForeignKey('gigs.id', ondelete='CASCADE'), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration = Column(Float, nullable=False)  # hours
    capacity = Column(Integer, nullable=False, default=1)
    reserved_count = Column(Integer, nullable=False, default=0)
    status = Column(
        db.Enum('available', 'full', 'cancelled', name='slot_status_enum'),
        nullable=False,
        default='available'
    )
    notes = Column(String(1000), nullable=True)
    # Single-owner slots created before multi-agent reservations existed
    rep_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    gig = relationship('Gig', back_populates='slots')

    # Relationship with Reservation (one-to-many)
    reservations = relationship(
        'Reservation',
        back_populates='slot',
        order_by='Reservation.reserved_at',
        cascade="save-update, merge"
    )

    __table_args__ = (
        UniqueConstraint('gig_id', 'date', 'start_time', 'end_time', name='uq_gig_slot_window'),
        CheckConstraint('capacity >= 1', name='ck_slot_capacity_positive'),
        CheckConstraint('reserved_count >= 0 AND reserved_count <= capacity', name='ck_slot_occupancy'),
        CheckConstraint('start_time < end_time', name='ck_slot_time_order'),
    )

    def __repr__(self):
        return (f"<TimeSlot gig_id={self.gig_id} date={self.date} "
                f"time_bracket={self.start_time} - {self.end_time} "
                f"occupancy={self.reserved_count}/{self.capacity}>")

    def recompute_status(self):
        return derive_status(self.reserved_count, self.capacity, self.status == 'cancelled')

    def to_dict(self):
        return {
            'id': self.id,
            'gigId': self.gig_id,
            'date': self.date.isoformat(),
            'startTime': format_hhmm(self.start_time),
            'endTime': format_hhmm(self.end_time),
            'duration': self.duration,
            'capacity': self.capacity,
            'reservedCount': self.reserved_count,
            'status': self.recompute_status(),
            'notes': self.notes,
            'repId': self.rep_id,
            'reservations': [r.to_summary() for r in self.reservations],
        }
