# catalog/models.py
"""SQLAlchemy ORM models for the authoritative catalog store.

`Resource` is the searchable entity; attributes, coordinates, images, line
items and comments hang off it and are removed with it.
"""
from sqlalchemy import (
    Column, Integer, Text, String, Numeric, TIMESTAMP, ForeignKey, Enum,
    UniqueConstraint, CheckConstraint, func, Index,
)
from sqlalchemy.orm import relationship
from .attributes import AttributeName
from .db import Base

class Resource(Base):
    __tablename__ = "resources"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    user_id = Column(Integer, nullable=False, index=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    attributes = relationship(
        "ResourceAttribute", back_populates="resource",
        cascade="all, delete-orphan", order_by="ResourceAttribute.name",
    )
    coordinates = relationship(
        "ResourceCoordinate", back_populates="resource", uselist=False,
        cascade="all, delete-orphan",
    )
    images = relationship(
        "ResourceImage", back_populates="resource",
        cascade="all, delete-orphan", order_by="ResourceImage.id",
    )
    items = relationship(
        "ResourceItem", back_populates="resource",
        cascade="all, delete-orphan", order_by="ResourceItem.id",
    )
    comments = relationship(
        "ResourceComment", back_populates="resource",
        cascade="all, delete-orphan", order_by="ResourceComment.id",
    )

    __table_args__ = (CheckConstraint("price >= 0", name="ck_resources_price_non_negative"),)


class ResourceAttribute(Base):
    __tablename__ = "resource_attributes"
    id = Column(Integer, primary_key=True)
    resource_id = Column(Integer, ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(
        Enum(AttributeName, name="attribute_name", values_callable=lambda e: [m.value for m in e]),
        nullable=False, index=True,
    )
    value = Column(String(255), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    resource = relationship("Resource", back_populates="attributes")

    __table_args__ = (UniqueConstraint("resource_id", "name", name="uq_resource_attributes_resource_name"),)


class ResourceCoordinate(Base):
    __tablename__ = "resource_coordinates"
    id = Column(Integer, primary_key=True)
    resource_id = Column(Integer, ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, unique=True)
    latitude = Column(Numeric(10, 8, asdecimal=False), nullable=False)
    longitude = Column(Numeric(11, 8, asdecimal=False), nullable=False)

    resource = relationship("Resource", back_populates="coordinates")

    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_coordinates_latitude"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_coordinates_longitude"),
    )


class ResourceImage(Base):
    __tablename__ = "resource_images"
    id = Column(Integer, primary_key=True)
    resource_id = Column(Integer, ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(2048), nullable=False)
    alt = Column(String(255))

    resource = relationship("Resource", back_populates="images")


class ResourceItem(Base):
    __tablename__ = "resource_items"
    id = Column(Integer, primary_key=True)
    resource_id = Column(Integer, ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    resource = relationship("Resource", back_populates="items")


class ResourceComment(Base):
    __tablename__ = "resource_comments"
    id = Column(Integer, primary_key=True)
    resource_id = Column(Integer, ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    message = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    resource = relationship("Resource", back_populates="comments")

Index("idx_resources_price", Resource.price)
Index("idx_resources_created_at", Resource.created_at)
Index("idx_coordinates_lat_lon", ResourceCoordinate.latitude, ResourceCoordinate.longitude)
