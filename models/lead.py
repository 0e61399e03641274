# app/models/lead.py
import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum

from models.base import Base


class LeadStatus(str, enum.Enum):
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    QUALIFIED = "QUALIFIED"
    CONVERTED = "CONVERTED"
    CLOSED = "CLOSED"


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    company = Column(String(200), nullable=True)
    message = Column(Text, nullable=True)
    source = Column(String(100), default="contact_form")
    locale = Column(String(10), nullable=True)

    status = Column(Enum(LeadStatus, name="lead_status"), default=LeadStatus.NEW, nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
