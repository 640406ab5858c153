# orderflow/data/models/record.py
from sqlalchemy import JSON, Column, String

from orderflow.data.database import Base


class RecordModel(Base):
    __tablename__ = "records"

    pk = Column(String(255), primary_key=True)
    sk = Column(String(255), primary_key=True)
    # druga sciezka dostepu, np. zamowienie po samym order_id
    lookup_key = Column(String(255), nullable=True, index=True)
    data = Column(JSON, nullable=False)
