"""Service catalog models: services and their bookable variants."""

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin
from app.scheduling.types import FollowUp, ServiceSelection


class Service(Base, TimestampMixin):
    """A bookable service (e.g. "Haircut") offered at a site."""

    __tablename__ = "services"

    site_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    # Display grouping only
    category: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    variants: Mapped[list["ServiceVariant"]] = relationship(
        "ServiceVariant",
        back_populates="service",
        foreign_keys="ServiceVariant.service_id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Service {self.name}>"


class ServiceVariant(Base, TimestampMixin):
    """A priced/timed variant of a service, optionally with a follow-up phase."""

    __tablename__ = "service_variants"

    service_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    duration_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    # Follow-up phase (e.g. colour processing after a cut)
    follow_up_name: Mapped[str | None] = mapped_column(
        String(150),
        nullable=True,
    )
    follow_up_wait_minutes: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    follow_up_duration_minutes: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    # Service whose capability the follow-up needs; defaults to the parent service
    follow_up_service_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("services.id", ondelete="SET NULL"),
        nullable=True,
    )

    service: Mapped["Service"] = relationship(
        "Service",
        back_populates="variants",
        foreign_keys=[service_id],
    )

    def to_selection(self, service: Service) -> ServiceSelection:
        follow_up = None
        if self.follow_up_name:
            follow_up = FollowUp(
                name=self.follow_up_name,
                wait_minutes=self.follow_up_wait_minutes,
                duration_minutes=self.follow_up_duration_minutes,
                service_id=self.follow_up_service_id,
            )
        return ServiceSelection(
            service_id=service.id,
            service_name=service.name,
            variant_id=self.id,
            duration_minutes=self.duration_minutes,
            follow_up=follow_up,
        )

    def __repr__(self) -> str:
        return f"<ServiceVariant {self.name} {self.duration_minutes}m>"
