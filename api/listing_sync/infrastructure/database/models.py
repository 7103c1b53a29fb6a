"""
Modelos de base de datos (ORM).
"""
from sqlalchemy import (
    JSON,
    BigInteger,
    Float,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from listing_sync.infrastructure.database.session import Base


class ListingModel(Base):
    """
    Listing local (contenido del sitio).

    Los campos sincronizables viven en `fields` (JSON) con su nombre local
    como clave; los adjuntos se guardan como lista de ids de ListingAttachmentModel.
    """

    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    remote_record_id = Column(String(64), nullable=True, unique=True, index=True)
    sync_enabled = Column(Boolean, nullable=False, default=True, index=True)
    fields = Column(JSON, nullable=False, default=dict)
    # NULL: nunca editado localmente (creado por la sincronización)
    modified_at = Column(DateTime(timezone=True), nullable=True, index=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    # Últimos valores acordados con Airtable; base para detectar ediciones locales
    synced_fields = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Listing(id={self.id}, title={self.title}, remote={self.remote_record_id})>"


class ListingAttachmentModel(Base):
    """Archivo de media asociado a un listing (foto, plano)."""

    __tablename__ = "listing_attachments"

    id = Column(Integer, primary_key=True, index=True)
    # Sin cascada: un adjunto cuyo listing desaparece queda huérfano para la limpieza
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="SET NULL"), nullable=True, index=True)
    field_name = Column(String(100), nullable=False)
    filename = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    byte_size = Column(BigInteger, nullable=False, default=0)
    storage_path = Column(Text, nullable=False)
    public_url = Column(Text, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    remote_attachment_id = Column(String(64), nullable=True, index=True)
    sync_source = Column(String(50), nullable=True, index=True)
    synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ListingAttachment(id={self.id}, listing_id={self.listing_id}, filename={self.filename})>"


class SyncCheckpointModel(Base):
    """Marca de última sincronización por dirección."""

    __tablename__ = "sync_checkpoints"

    direction = Column(String(50), primary_key=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class SyncHistoryModel(Base):
    """Entrada del historial de corridas."""

    __tablename__ = "sync_history"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    direction = Column(String(50), nullable=False)
    trigger = Column(String(50), nullable=False)
    status = Column(String(50), nullable=False)
    duration_s = Column(Float, nullable=False, default=0.0)
    records_processed = Column(Integer, nullable=False, default=0)
    stats = Column(JSON, nullable=False, default=dict)
    error = Column(Text, nullable=True)

    def __repr__(self):
        return f"<SyncHistory(id={self.id}, direction={self.direction}, status={self.status})>"


class SystemSettingsModel(Base):
    """Configuración clave/valor editable desde el panel de administración."""

    __tablename__ = "system_settings"

    key = Column(String(255), primary_key=True)
    value = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
