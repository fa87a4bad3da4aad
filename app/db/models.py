"""
SQLAlchemy database models for Readarr Request.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class InstanceConfig(Base):
    """Connection settings for one Readarr instance (ebooks or audio)."""
    __tablename__ = 'instance_settings'

    id = Column(Integer, primary_key=True)
    name = Column(String(20), unique=True, index=True, nullable=False)  # ebooks, audio
    base_url = Column(String(500), nullable=False)
    api_key = Column(String(500), nullable=False)
    root_folder_path = Column(String(1000), nullable=True)
    quality_profile_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_settings(self):
        from app.config import InstanceSettings

        return InstanceSettings(
            baseUrl=self.base_url or "",
            apiKey=self.api_key or "",
            rootFolderPath=self.root_folder_path or "",
            qualityProfileId=self.quality_profile_id or 0,
        )
