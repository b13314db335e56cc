# erps/models/user.py
"""
Minimal actor directory.
Accounts are managed by the partner-account system; the lifecycle engine only reads
role and accreditation flags to resolve installer / inspector / admin references.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, String
from erps.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name = Column(String(200), nullable=False)
    email = Column(String(200), index=True)
    phone_number = Column(String(50))
    role = Column(String(20), nullable=False, index=True)  # AGENT | INSTALLER | INSPECTOR | ADMIN
    is_accredited = Column(Boolean, default=False, nullable=False)   # installers
    is_certified = Column(Boolean, default=False, nullable=False)    # inspectors
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<User {self.id} role={self.role} name={self.full_name}>"
