from sqlalchemy import Column, String, DateTime, Integer, Boolean, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from circulation.database import Base

class User(Base):
    """Library member as seen by circulation. Identity lives elsewhere."""
    __tablename__ = "user"
    
    user_id = Column(Integer, primary_key=True, autoincrement=True)
    user_fname = Column(String(100), nullable=False)
    user_lname = Column(String(100), nullable=False)
    user_email = Column(String(255), unique=True, nullable=False, index=True)
    user_role = Column(String(50), default='student', nullable=False)  # student, librarian, admin
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    # Relationships
    loans = relationship("Loan", back_populates="user")

    __table_args__ = (
        CheckConstraint("user_role IN ('student', 'librarian', 'admin')", name="chk_user_role"),
    )
    
    def to_dict(self):
        return {
            "id": str(self.user_id),
            "name": f"{self.user_fname} {self.user_lname}",
            "email": self.user_email,
            "role": self.user_role,
            "active": self.active,
        }
