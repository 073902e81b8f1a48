from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from db.extensions import db
from datetime import datetime


class AttendanceRecord(db.Model):
    __tablename__ = 'attendance_records'

    id = Column(Integer, primary_key=True)
    rep_id = Column(String(36), ForeignKey('reps.id', ondelete='CASCADE'), nullable=False)
    slot_id = Column(String(36), nullable=False)
    date = Column(Date, nullable=False)
    attended = Column(Boolean, nullable=False)
    reason = Column(String(500), nullable=True)
    recorded_at = Column(DateTime, default=datetime.utcnow)

    rep = relationship('Rep', back_populates='attendance_history')

    def __repr__(self):
        return f"<AttendanceRecord rep_id={self.rep_id} slot_id={self.slot_id} attended={self.attended}>"

    def to_dict(self):
        return {
            'date': self.date.isoformat(),
            'slotId': self.slot_id,
            'attended': self.attended,
            'reason': self.reason,
        }
