"""
SQLAlchemy engine, session factory and table definitions for the durable store.
"""
from sqlalchemy import Column, DateTime, Integer, Numeric, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class FeeAssessmentRecord(Base):
    __tablename__ = "fees_information"

    fee_record_id = Column(Integer, primary_key=True, autoincrement=True)
    enrollment_id = Column(Integer, unique=True, nullable=False, index=True)
    student_id = Column(String(64))
    term = Column(String(64))
    currency = Column(String(8), nullable=False, default="PHP")
    tuition_fee = Column(Numeric(12, 2), nullable=False, default=0)
    computer_lab_fee = Column(Numeric(12, 2), nullable=False, default=0)
    athletic_fee = Column(Numeric(12, 2), nullable=False, default=0)
    cultural_fee = Column(Numeric(12, 2), nullable=False, default=0)
    internet_fee = Column(Numeric(12, 2), nullable=False, default=0)
    library_fee = Column(Numeric(12, 2), nullable=False, default=0)
    medical_dental_fee = Column(Numeric(12, 2), nullable=False, default=0)
    registration_fee = Column(Numeric(12, 2), nullable=False, default=0)
    school_pub_fee = Column(Numeric(12, 2), nullable=False, default=0)
    id_validation_fee = Column(Numeric(12, 2), nullable=False, default=0)
    total_assessed = Column(Numeric(12, 2), nullable=False)


class PaymentTransactionRecord(Base):
    __tablename__ = "payment_transactions"

    # surrogate key preserves insertion order for same-day history ties
    seq = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(64), unique=True, nullable=False, index=True)
    enrollment_id = Column(Integer, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False)
    payment_method = Column(String(64), nullable=False)
    transaction_ref = Column(String(128), nullable=True)
    status = Column(String(20), nullable=False, default="PENDING")
    transaction_timestamp = Column(DateTime(timezone=True), nullable=True)
    description = Column(String(255), nullable=True)


def make_engine(database_url: str, timeout_seconds: float = 5.0) -> Engine:
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )
    return create_engine(database_url, pool_timeout=timeout_seconds, pool_pre_ping=True)


def init_db(engine: Engine) -> sessionmaker:
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autoflush=False, bind=engine, expire_on_commit=False)
