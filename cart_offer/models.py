# cart_offer/models.py
from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from cart_offer.config import DATABASE_URL

Base = declarative_base()


class Offer(Base):
    __tablename__ = "offers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(Integer, index=True, nullable=False)
    offer_type = Column(String, nullable=False)
    offer_value = Column(Integer, nullable=False)
    customer_segment = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=True)


def make_engine(url: str):
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
