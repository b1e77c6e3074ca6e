from sqlalchemy import Column, String, JSON, Integer, Boolean, DateTime, func, false

from listing_api.database import Base


class DocumentRow(Base):
	__tablename__ = "documents"

	collection = Column(String(100), primary_key=True)
	id = Column(String(100), primary_key=True)
	data = Column(JSON, nullable=False)
	version = Column(Integer, nullable=False, default=1)
	# Deleted rows stay behind so a re-created document continues the version count
	deleted = Column(Boolean, nullable=False, default=False, server_default=false())
	created_at = Column(DateTime(timezone=True), server_default=func.now())
	updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
