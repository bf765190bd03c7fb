"""
SQLAlchemy models for tenants, themes and template catalog.

These rows are maintained by the template management surface; the
generation engine only reads them.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, PrimaryKeyConstraint, String, TIMESTAMP, Text

from src.database.connection import Base
from src.database.models.types import JSONType, utc_now


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    default_theme_id = Column(String(64), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)


class ThemeRecord(Base):
    """Theme: document style defaults, page settings and block presets."""

    __tablename__ = "themes"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    document_styles = Column(JSONType, default=dict, nullable=False)
    page_settings = Column(JSONType, nullable=True)
    block_style_presets = Column(JSONType, default=dict, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)

    def to_theme_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "documentStyles": self.document_styles or {},
            "pageSettings": self.page_settings,
            "blockStylePresets": self.block_style_presets or {},
        }


class DocumentTemplate(Base):
    __tablename__ = "document_templates"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    theme_id = Column(String(64), nullable=True)  # Template default theme
    document_styles = Column(JSONType, nullable=True)  # Overrides theme document styles
    page_settings = Column(JSONType, nullable=True)  # Overrides theme page settings
    created_at = Column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)


class TemplateVariant(Base):
    """
    Presentation variation of a template.

    attributes holds the key/value pairs used by criteria-based selection.
    """

    __tablename__ = "template_variants"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    template_id = Column(String(64), ForeignKey("document_templates.id"), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    attributes = Column(JSONType, default=dict, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)


class TemplateVersion(Base):
    """Versioned template graph; published versions are immutable."""

    __tablename__ = "template_versions"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    template_id = Column(String(64), ForeignKey("document_templates.id"), nullable=False)
    variant_id = Column(String(64), ForeignKey("template_variants.id"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False, default=1)
    template_model = Column(JSONType, nullable=False)
    theme_id = Column(String(64), nullable=True)  # Version theme, ahead of the template default
    status = Column(String(20), nullable=False, default="draft")  # draft, published, archived
    created_at = Column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
    published_at = Column(TIMESTAMP(timezone=True), nullable=True)


class Environment(Base):
    __tablename__ = "environments"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)


class EnvironmentActivation(Base):
    """Version currently active for a variant in an environment."""

    __tablename__ = "environment_activations"
    __table_args__ = (PrimaryKeyConstraint("environment_id", "variant_id"),)

    environment_id = Column(String(64), ForeignKey("environments.id"), nullable=False)
    variant_id = Column(String(64), ForeignKey("template_variants.id"), nullable=False)
    tenant_id = Column(String(64), nullable=False, index=True)
    version_id = Column(String(64), ForeignKey("template_versions.id"), nullable=False)
    activated_at = Column(TIMESTAMP(timezone=True), default=utc_now, nullable=False)
