from sqlalchemy import Column, String, Text, ForeignKey, DateTime, JSON
from sqlalchemy.orm import relationship
from db.extensions import db
from datetime import datetime
import uuid

from models.company import Company
from services.utils import string_to_color


class Gig(db.Model):
    __tablename__ = 'gigs'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(7), nullable=True)
    skills = Column(JSON, default=list)
    priority = Column(db.Enum('low', 'medium', 'high', name='gig_priority_enum'), default='medium')
    created_at = Column(DateTime, default=datetime.utcnow)

    company = relationship('Company', back_populates='gigs')

    # Relationship with TimeSlot (one-to-many)
    slots = relationship('TimeSlot', back_populates='gig', cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Gig id={self.id} name={self.name} company_id={self.company_id}>"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description or '',
            'companyId': self.company_id,
            'company': self.company.name if self.company else None,
            'color': self.color or string_to_color(self.id),
            'skills': list(self.skills or []),
            'priority': self.priority or 'medium',
        }
