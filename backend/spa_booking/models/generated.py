from sqlalchemy import Column, Enum, Float, ForeignKey, Index, Integer, Text, UniqueConstraint, event, text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Users(Base):
    __tablename__ = 'users'

    email = Column(Text, nullable=False, unique=True)
    first_name = Column(Text, nullable=False)
    role = Column(Enum('customer', 'staff', 'admin'), nullable=False, server_default=text("'customer'"))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    last_name = Column(Text)
    phone = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    staff_profile = relationship('StaffProfiles', uselist=False, back_populates='user')
    bookings = relationship('Bookings', back_populates='customer', foreign_keys='Bookings.customer_id')


class Rooms(Base):
    __tablename__ = 'rooms'

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False, unique=True)
    number = Column(Integer, nullable=False, unique=True)
    bed_capacity = Column(Integer, nullable=False, server_default=text('1'))
    has_shower = Column(Integer, nullable=False, server_default=text('0'))
    has_specialized_drainage = Column(Integer, nullable=False, server_default=text('0'))
    equipment = Column(Text, nullable=False, server_default=text("'{}'"))
    is_active = Column(Integer, nullable=False, server_default=text('1'))

    bookings = relationship('Bookings', back_populates='room')
    service_rooms = relationship('ServiceRooms', back_populates='room')


class Services(Base):
    __tablename__ = 'services'

    name = Column(Text, nullable=False)
    category = Column(
        Enum('massage', 'facial', 'body_treatment', 'nail_care', 'hair_removal', 'wellness'),
        nullable=False,
    )
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False, server_default=text('0'))
    requires_specialized_drainage = Column(Integer, nullable=False, server_default=text('0'))
    min_room_capacity = Column(Integer, nullable=False, server_default=text('1'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)

    bookings = relationship('Bookings', back_populates='service')
    service_rooms = relationship('ServiceRooms', back_populates='service')


class ServiceRooms(Base):
    """Explicit room allow-list for a service. No active rows = any room."""
    __tablename__ = 'service_rooms'
    __table_args__ = (
        UniqueConstraint('room_id', 'service_id'),
    )

    room_id = Column(ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id', ondelete='CASCADE'), nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    notes = Column(Text)

    room = relationship('Rooms', back_populates='service_rooms')
    service = relationship('Services', back_populates='service_rooms')


class StaffProfiles(Base):
    __tablename__ = 'staff_profiles'

    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    employee_id = Column(Text, nullable=False, unique=True)
    specializations = Column(Text, nullable=False, server_default=text("'[]'"))  # JSON list of categories
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    display_name = Column(Text)
    hire_date = Column(Text)

    user = relationship('Users', back_populates='staff_profile')
    schedules = relationship('StaffSchedules', back_populates='staff')
    bookings = relationship('Bookings', back_populates='staff')


class StaffSchedules(Base):
    __tablename__ = 'staff_schedules'
    __table_args__ = (
        Index('idx_staff_schedules_staff_date', 'staff_id', 'date'),
    )

    staff_id = Column(ForeignKey('staff_profiles.id', ondelete='CASCADE'), nullable=False)
    date = Column(Text, nullable=False)  # YYYY-MM-DD
    start_time = Column(Text, nullable=False)  # HH:MM
    end_time = Column(Text, nullable=False)
    status = Column(
        Enum('available', 'booked', 'break', 'unavailable'),
        nullable=False,
        server_default=text("'available'"),
    )
    id = Column(Integer, primary_key=True)
    notes = Column(Text)

    staff = relationship('StaffProfiles', back_populates='schedules')


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        Index('idx_bookings_room_date', 'room_id', 'booking_date'),
        Index('idx_bookings_staff_date', 'staff_id', 'booking_date'),
    )

    customer_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    staff_id = Column(ForeignKey('staff_profiles.id'), nullable=False)
    room_id = Column(ForeignKey('rooms.id'), nullable=False)
    booking_date = Column(Text, nullable=False)  # YYYY-MM-DD
    start_time = Column(Text, nullable=False)  # HH:MM
    end_time = Column(Text, nullable=False)
    status = Column(
        Enum('pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show'),
        nullable=False,
        server_default=text("'pending'"),
    )
    total_price = Column(Float, nullable=False, server_default=text('0'))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    special_requests = Column(Text)
    internal_notes = Column(Text)
    cancellation_reason = Column(Text)
    cancelled_at = Column(Text)
    cancelled_by = Column(ForeignKey('users.id', ondelete='SET NULL'))

    customer = relationship('Users', back_populates='bookings', foreign_keys=[customer_id])
    service = relationship('Services', back_populates='bookings')
    staff = relationship('StaffProfiles', back_populates='bookings')
    room = relationship('Rooms', back_populates='bookings')
    history = relationship(
        'BookingHistory',
        back_populates='booking',
        order_by='BookingHistory.id',
    )


class BookingHistory(Base):
    __tablename__ = 'booking_history'

    booking_id = Column(ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, index=True)
    new_status = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    changed_by = Column(ForeignKey('users.id', ondelete='SET NULL'))
    old_status = Column(Text)
    change_reason = Column(Text)
    change_details = Column(Text, nullable=False, server_default=text("'{}'"))

    booking = relationship('Bookings', back_populates='history')


# Bookings are cancelled, never deleted; history is append-only.

@event.listens_for(Bookings, "before_delete")
def _forbid_booking_delete(mapper, connection, target):
    raise ValueError(f"Booking {target.id} cannot be deleted; cancel it instead")


@event.listens_for(BookingHistory, "before_update")
def _forbid_history_update(mapper, connection, target):
    raise ValueError(f"Booking history entry {target.id} is append-only")


@event.listens_for(BookingHistory, "before_delete")
def _forbid_history_delete(mapper, connection, target):
    raise ValueError(f"Booking history entry {target.id} is append-only")
