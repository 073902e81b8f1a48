from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from db.extensions import db
from datetime import datetime
import uuid


class Company(db.Model):
    __tablename__ = 'companies'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    priority = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # One-to-many relationship to Gig
    gigs = relationship('Gig', back_populates='company', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Company id={self.id} name={self.name}>"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'priority': self.priority,
        }
