"""Persisted transactions and the store that reads and writes them."""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import DateTime, Index, Integer, Numeric, String, Text, delete, or_, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Mapped, Session, mapped_column

from tnprop.db import Base

logger = logging.getLogger(__name__)


class TransactionRecord(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("buyer_name_idx", "buyer_name"),
        Index("seller_name_idx", "seller_name"),
        Index("house_number_idx", "house_number"),
        Index("survey_number_idx", "survey_number"),
        Index("document_number_idx", "document_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    buyer_name: Mapped[str] = mapped_column(Text, nullable=False)
    buyer_name_native: Mapped[str | None] = mapped_column(Text, nullable=True)
    seller_name: Mapped[str] = mapped_column(Text, nullable=False)
    seller_name_native: Mapped[str | None] = mapped_column(Text, nullable=True)
    house_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    survey_number: Mapped[str] = mapped_column(String(128), nullable=False)
    document_number: Mapped[str] = mapped_column(String(128), nullable=False)
    transaction_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    transaction_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    district: Mapped[str | None] = mapped_column(Text, nullable=True)
    village: Mapped[str | None] = mapped_column(Text, nullable=True)
    additional_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    pdf_file_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    extracted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "buyerName": self.buyer_name,
            "buyerNameNative": self.buyer_name_native,
            "sellerName": self.seller_name,
            "sellerNameNative": self.seller_name_native,
            "houseNumber": self.house_number,
            "surveyNumber": self.survey_number,
            "documentNumber": self.document_number,
            "transactionDate": self.transaction_date,
            "transactionValue": str(self.transaction_value) if self.transaction_value is not None else None,
            "district": self.district,
            "village": self.village,
            "additionalInfo": self.additional_info,
            "pdfFileName": self.pdf_file_name,
            "extractedAt": self.extracted_at.isoformat() if self.extracted_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


def _parse_value(raw: Any) -> Decimal | None:
    if raw is None or raw == "":
        return None
    try:
        return Decimal(str(raw).replace(",", "").strip())
    except InvalidOperation:
        logger.warning(f"Unparseable transaction value {raw!r}; storing NULL")
        return None


def _blank_to_none(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def record_from_dict(data: dict) -> TransactionRecord:
    """Map a camelCase pipeline record onto a ``TransactionRecord`` row."""
    return TransactionRecord(
        buyer_name=data.get("buyerName") or "Unknown",
        buyer_name_native=_blank_to_none(data.get("buyerNameNative")),
        seller_name=data.get("sellerName") or "Unknown",
        seller_name_native=_blank_to_none(data.get("sellerNameNative")),
        house_number=_blank_to_none(data.get("houseNumber")),
        survey_number=str(data["surveyNumber"]),
        document_number=str(data["documentNumber"]),
        transaction_date=_blank_to_none(data.get("transactionDate")),
        transaction_value=_parse_value(data.get("transactionValue")),
        district=_blank_to_none(data.get("district")),
        village=_blank_to_none(data.get("village")),
        additional_info=_blank_to_none(data.get("additionalInfo")),
        pdf_file_name=_blank_to_none(data.get("pdfFileName")),
    )


class TransactionStore:
    """CRUD and lookup over the ``transactions`` table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def create_many(self, records: list[dict]) -> list[dict]:
        if not records:
            return []
        with Session(self.engine) as session:
            rows = [record_from_dict(r) for r in records]
            session.add_all(rows)
            session.commit()
            for row in rows:
                session.refresh(row)
            return [row.to_dict() for row in rows]

    def find_all(self) -> list[dict]:
        with Session(self.engine) as session:
            rows = session.scalars(select(TransactionRecord).order_by(TransactionRecord.id.asc())).all()
            return [row.to_dict() for row in rows]

    def find_by_id(self, record_id: int) -> dict | None:
        with Session(self.engine) as session:
            row = session.get(TransactionRecord, record_id)
            return row.to_dict() if row is not None else None

    def find_by_filters(
        self,
        buyer_name: str | None = None,
        seller_name: str | None = None,
        house_number: str | None = None,
        survey_number: str | None = None,
        document_number: str | None = None,
    ) -> list[dict]:
        """Substring match on names, exact match on numbers.  No filters means everything."""
        stmt = select(TransactionRecord)
        if buyer_name:
            stmt = stmt.where(TransactionRecord.buyer_name.like(f"%{buyer_name}%"))
        if seller_name:
            stmt = stmt.where(TransactionRecord.seller_name.like(f"%{seller_name}%"))
        if house_number:
            stmt = stmt.where(TransactionRecord.house_number == house_number)
        if survey_number:
            stmt = stmt.where(TransactionRecord.survey_number == survey_number)
        if document_number:
            stmt = stmt.where(TransactionRecord.document_number == document_number)

        with Session(self.engine) as session:
            rows = session.scalars(stmt.order_by(TransactionRecord.id.asc())).all()
            return [row.to_dict() for row in rows]

    def search(self, query: str) -> list[dict]:
        """Substring match of ``query`` against any name or number column."""
        if not query or not query.strip():
            return []
        pattern = f"%{query.strip()}%"
        stmt = select(TransactionRecord).where(
            or_(
                TransactionRecord.buyer_name.like(pattern),
                TransactionRecord.seller_name.like(pattern),
                TransactionRecord.house_number.like(pattern),
                TransactionRecord.survey_number.like(pattern),
                TransactionRecord.document_number.like(pattern),
            )
        )
        with Session(self.engine) as session:
            rows = session.scalars(stmt.order_by(TransactionRecord.id.asc())).all()
            return [row.to_dict() for row in rows]

    def delete_all(self) -> int:
        with Session(self.engine) as session:
            result = session.execute(delete(TransactionRecord))
            session.commit()
            return result.rowcount or 0
