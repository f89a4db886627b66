from sqlalchemy import Column, ForeignKey, Index, Integer, Table, Text, UniqueConstraint, text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Specialists(Base):
    __tablename__ = 'specialists'

    work_schedule = Column(Text, nullable=False, server_default=text("'{}'"))
    id = Column(Integer, primary_key=True)
    display_name = Column(Text)
    email = Column(Text)
    is_active = Column(Integer, server_default=text('1'))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    bookings = relationship('Bookings', back_populates='specialist')
    schedule_overrides = relationship('ScheduleOverrides', back_populates='specialist')
    time_off = relationship('TimeOff', back_populates='specialist')


class Services(Base):
    __tablename__ = 'services'

    name = Column(Text, nullable=False)
    duration_min = Column(Integer, nullable=False)
    buffer_before_min = Column(Integer, nullable=False, server_default=text('0'))
    buffer_after_min = Column(Integer, nullable=False, server_default=text('0'))
    price = Column(Integer, nullable=False, server_default=text('0'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    # JSON list of "HH:MM"; NULL = computed grid, '[]' = not bookable
    fixed_times = Column(Text)
    description = Column(Text)

    bookings = relationship('Bookings', back_populates='service')


t_specialist_services = Table(
    'specialist_services', metadata,
    Column('specialist_id', ForeignKey('specialists.id', ondelete='CASCADE'), primary_key=True),
    Column('service_id', ForeignKey('services.id', ondelete='CASCADE'), primary_key=True),
    Column('is_active', Integer, nullable=False, server_default=text('1')),
)


class ScheduleOverrides(Base):
    __tablename__ = 'schedule_overrides'
    __table_args__ = (
        UniqueConstraint('specialist_id', 'date'),
    )

    specialist_id = Column(ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False)
    date = Column(Text, nullable=False)
    # JSON list of day windows; '[]' = closed that date
    windows = Column(Text, nullable=False, server_default=text("'[]'"))
    id = Column(Integer, primary_key=True)
    reason = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    specialist = relationship('Specialists', back_populates='schedule_overrides')


class TimeOff(Base):
    __tablename__ = 'time_off'

    specialist_id = Column(ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False)
    date_start = Column(Text, nullable=False)
    date_end = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    reason = Column(Text)

    specialist = relationship('Specialists', back_populates='time_off')


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        # One live booking per exact (specialist, start, end); cancelled rows are exempt.
        Index(
            'uq_bookings_active_slot',
            'specialist_id', 'date_start', 'date_end',
            unique=True,
            sqlite_where=text("status NOT LIKE 'cancelled%'"),
            postgresql_where=text("status NOT LIKE 'cancelled%'"),
        ),
    )

    specialist_id = Column(ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id'))
    client_name = Column(Text, nullable=False, server_default=text("'Client'"))
    client_email = Column(Text)
    client_phone = Column(Text)
    date_start = Column(Text, nullable=False)
    date_end = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    source = Column(Text, nullable=False, server_default=text("'public_booking'"))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    final_price = Column(Integer)
    notes = Column(Text)
    cancel_reason = Column(Text)
    waitlist_entry_id = Column(ForeignKey('waitlist_entries.id', ondelete='SET NULL'))

    service = relationship('Services', back_populates='bookings')
    specialist = relationship('Specialists', back_populates='bookings')


class WaitlistEntries(Base):
    __tablename__ = 'waitlist_entries'
    __table_args__ = (
        Index('ix_waitlist_lookup', 'status', 'service_id', 'specialist_id', 'created_at'),
    )

    service_id = Column(ForeignKey('services.id', ondelete='CASCADE'), nullable=False)
    client_name = Column(Text, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'waiting'"))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    # NULL = any specialist / any date
    specialist_id = Column(ForeignKey('specialists.id', ondelete='CASCADE'))
    desired_date = Column(Text)
    time_preference = Column(Text, nullable=False, server_default=text("'any'"))
    # phone-only entries carry no email
    client_email = Column(Text)
    client_phone = Column(Text)
    claimed_at = Column(Text)
    fulfilled_at = Column(Text)
    fulfilled_booking_id = Column(Integer)
    notes = Column(Text)
