from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime,
    ForeignKey, Text, JSON, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship, declarative_base
from datetime import datetime
from utils.identifiers import new_id

Base = declarative_base()


class Region(Base):
    __tablename__ = "regions"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    disbursers = relationship("Disburser", back_populates="region")
    beneficiaries = relationship("Beneficiary", back_populates="region")
    stock_lines = relationship("RegionalGoods", back_populates="region")


class Disburser(Base):
    __tablename__ = "disbursers"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    phone_number = Column(String(20), unique=True, nullable=False)
    region_id = Column(String(36), ForeignKey("regions.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    region = relationship("Region", back_populates="disbursers")


class Beneficiary(Base):
    __tablename__ = "beneficiaries"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    region_id = Column(String(36), ForeignKey("regions.id"), nullable=False, index=True)
    estimated_age = Column(Integer, nullable=True)
    height = Column(Float, nullable=True)          # cm
    unique_identifiers = Column(JSON, default=dict)
    registered_by = Column(String(36), ForeignKey("disbursers.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    region = relationship("Region", back_populates="beneficiaries")


class GoodsType(Base):
    __tablename__ = "goods_types"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class RegionalGoods(Base):
    __tablename__ = "regional_goods"
    __table_args__ = (
        UniqueConstraint("region_id", "goods_type_id", name="uq_regional_goods_region_type"),
        CheckConstraint("quantity >= 0", name="ck_regional_goods_quantity"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    region_id = Column(String(36), ForeignKey("regions.id"), nullable=False, index=True)
    goods_type_id = Column(String(36), ForeignKey("goods_types.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    region = relationship("Region", back_populates="stock_lines")
    goods_type = relationship("GoodsType", lazy="joined")


class Allocation(Base):
    __tablename__ = "allocations"

    id = Column(String(36), primary_key=True, default=new_id)
    beneficiary_id = Column(String(36), ForeignKey("beneficiaries.id"), nullable=False, index=True)
    disburser_id = Column(String(36), ForeignKey("disbursers.id"), nullable=False, index=True)
    goods = Column(JSON, nullable=False)           # [{goods_type_id, name, quantity}]
    location = Column(JSON, nullable=True)         # {latitude, longitude}
    allocated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class FraudAlert(Base):
    __tablename__ = "fraud_alerts"

    id = Column(String(36), primary_key=True, default=new_id)
    beneficiary_id = Column(String(36), ForeignKey("beneficiaries.id"), nullable=False, index=True)
    disburser_id = Column(String(36), ForeignKey("disbursers.id"), nullable=False, index=True)
    location = Column(JSON, nullable=True)
    details = Column(Text, nullable=True)
    attempted_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
