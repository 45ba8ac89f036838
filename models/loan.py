from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text, func

from database import Base


class Loan(Base):
    __tablename__ = "loans"

    id = Column(String(64), primary_key=True, index=True)
    # Submission fields (immutable once submitted)
    borrower_name = Column(String(256), nullable=True)
    borrower_id = Column(String(64), nullable=True, index=True)
    entitas_id = Column(String(64), nullable=True)
    company = Column(JSON, nullable=False, default=list)
    need_type = Column(String(64), nullable=True)
    out_date = Column(String(32), nullable=True)
    use_date = Column(String(32), nullable=True)
    return_date = Column(String(32), nullable=True)
    product_details = Column(Text, nullable=True)
    pickup_method = Column(String(64), nullable=True)
    note = Column(Text, nullable=True)
    is_draft = Column(Boolean, nullable=False, default=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    # Independently evolving sub-state; history lives in the append-only lists
    approvals = Column(JSON, nullable=True)
    warehouse_status = Column(JSON, nullable=True)
    return_status = Column(JSON, nullable=True)
    return_request = Column(JSON, nullable=True)
    extend_status = Column(JSON, nullable=True)
    loan_status = Column(String(64), nullable=True)
    # Memoized fine projection, rewritten by the recompute job
    total_denda = Column(JSON, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
