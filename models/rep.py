from sqlalchemy import Column, Integer, String, Float, DateTime, JSON
from sqlalchemy.orm import relationship
from db.extensions import db
from datetime import datetime
import uuid

from models.attendanceRecord import AttendanceRecord


class Rep(db.Model):
    __tablename__ = 'reps'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    avatar = Column(String(500), nullable=True)
    specialties = Column(JSON, default=list)
    performance_score = Column(Float, nullable=True)
    preferred_start_hour = Column(Integer, nullable=True)
    preferred_end_hour = Column(Integer, nullable=True)
    attendance_score = Column(Integer, nullable=True)  # 0-100
    created_at = Column(DateTime, default=datetime.utcnow)

    attendance_history = relationship(
        'AttendanceRecord',
        back_populates='rep',
        order_by='[AttendanceRecord.recorded_at, AttendanceRecord.id]',
        cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f"<Rep id={self.id} name={self.name}>"

    def to_dict(self):
        preferred_hours = None
        if self.preferred_start_hour is not None and self.preferred_end_hour is not None:
            preferred_hours = {'start': self.preferred_start_hour, 'end': self.preferred_end_hour}
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'avatar': self.avatar,
            'specialties': list(self.specialties or []),
            'performanceScore': self.performance_score,
            'preferredHours': preferred_hours,
            'attendanceScore': self.attendance_score,
            'attendanceHistory': [record.to_dict() for record in self.attendance_history],
        }
