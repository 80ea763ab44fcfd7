"""
Create tables and seed a demo spa catalog.

Usage:
    python backend/scripts/init_db.py [--days 14] [--reset]

Rooms:
  1 Serenity Suite   1 bed
  2 Harmony Haven    2 beds
  3 Renewal Retreat  2 beds, specialized drainage (body treatments)

Staff get 09:00-20:00 availability for the next --days days, skipping
each member's weekly day off.
"""

import argparse
import json
import logging
import sys
import pathlib
from datetime import date, timedelta

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from dotenv import load_dotenv

load_dotenv()

from spa_booking.database import SessionLocal, engine  # noqa: E402
from spa_booking.models.generated import (  # noqa: E402
    Base,
    Rooms,
    ServiceRooms,
    Services,
    StaffProfiles,
    StaffSchedules,
    Users,
)

logger = logging.getLogger("init_db")


# ======================================================
# CATALOG
# ======================================================

ROOMS = [
    # name, number, beds, shower, drainage, equipment
    ("Serenity Suite", 1, 1, False, False, {"massage_table": 1}),
    ("Harmony Haven", 2, 2, True, False, {"massage_table": 2}),
    ("Renewal Retreat", 3, 2, True, True, {"massage_table": 2, "wet_table": 1}),
]

SERVICES = [
    # name, category, minutes, price, drainage, min beds
    ("Basic Facial", "facial", 30, 65.00, False, 1),
    ("Deep Cleansing Facial", "facial", 60, 79.00, False, 1),
    ("Microderm Facial", "facial", 60, 99.00, False, 1),
    ("Vitamin C Facial with Extreme Softness", "facial", 60, 120.00, False, 1),
    ("Balinese Body Massage", "massage", 60, 80.00, False, 1),
    ("Deep Tissue Body Massage", "massage", 60, 90.00, False, 1),
    ("Hot Stone Massage", "massage", 60, 90.00, False, 1),
    ("Hot Stone Massage 90 Minutes", "massage", 90, 120.00, False, 1),
    ("Couples Balinese Massage", "massage", 60, 160.00, False, 2),
    ("Back Treatment", "body_treatment", 30, 99.00, True, 1),
    ("Dead Sea Salt Body Scrub + Deep Moisturizing", "body_treatment", 30, 65.00, True, 1),
    ("Mud Mask Body Wrap + Deep Moisturizing Body Treatment", "body_treatment", 30, 65.00, True, 1),
    ("Deep Moisturizing Body Treatment", "body_treatment", 30, 65.00, False, 1),
    ("Eyebrow Waxing", "hair_removal", 15, 20.00, False, 1),
    ("Full Leg Waxing", "hair_removal", 60, 80.00, False, 1),
    ("Brazilian Wax (Women)", "hair_removal", 45, 60.00, True, 1),
    ("Balinese Body Massage + Basic Facial", "wellness", 90, 130.00, False, 1),
    ("Hot Stone Body Massage + Microderm Facial", "wellness", 150, 200.00, False, 1),
]

STAFF = [
    # email, first, last, employee id, specializations, weekday off (0 = Monday)
    ("selma@spa.local", "Selma", "Villaver", "EMP001", ["facial", "massage", "body_treatment", "hair_removal", "wellness"], 1),
    ("tanisha@spa.local", "Tanisha", "Harris", "EMP002", ["facial", "wellness"], 0),
    ("robyn@spa.local", "Robyn", "Camacho", "EMP003", ["massage", "facial", "wellness"], 2),
    ("leonel@spa.local", "Leonel", "Sidon", "EMP004", ["massage", "body_treatment"], 6),
]


# ======================================================
# SEED
# ======================================================

def seed(db, days: int) -> None:
    rooms = []
    for name, number, beds, shower, drainage, equipment in ROOMS:
        room = Rooms(
            name=name,
            number=number,
            bed_capacity=beds,
            has_shower=int(shower),
            has_specialized_drainage=int(drainage),
            equipment=json.dumps(equipment),
        )
        db.add(room)
        rooms.append(room)
    db.flush()

    for name, category, minutes, price, drainage, min_beds in SERVICES:
        service = Services(
            name=name,
            category=category,
            duration_minutes=minutes,
            price=price,
            requires_specialized_drainage=int(drainage),
            min_room_capacity=min_beds,
        )
        db.add(service)
        db.flush()

        # Drainage services may only use drainage rooms
        if drainage:
            for room in rooms:
                if room.has_specialized_drainage:
                    db.add(ServiceRooms(room_id=room.id, service_id=service.id))

    db.add(Users(email="demo.customer@spa.local", first_name="Demo", last_name="Customer"))

    today = date.today()
    for email, first, last, employee_id, specs, day_off in STAFF:
        user = Users(email=email, first_name=first, last_name=last, role="staff")
        db.add(user)
        db.flush()

        profile = StaffProfiles(
            user_id=user.id,
            employee_id=employee_id,
            specializations=json.dumps(specs),
            display_name=f"{first} {last}",
            hire_date=today.isoformat(),
        )
        db.add(profile)
        db.flush()

        for offset in range(days):
            day = today + timedelta(days=offset)
            if day.weekday() == day_off:
                continue
            db.add(StaffSchedules(
                staff_id=profile.id,
                date=day.isoformat(),
                start_time="09:00",
                end_time="20:00",
            ))

    db.commit()
    logger.info(
        f"Seeded {len(ROOMS)} rooms, {len(SERVICES)} services, "
        f"{len(STAFF)} staff with {days} days of schedules"
    )


def main():
    parser = argparse.ArgumentParser(description="Create tables and seed demo data")
    parser.add_argument("--days", type=int, default=14, help="schedule horizon in days")
    parser.add_argument("--reset", action="store_true", help="drop all tables first")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if engine.url.drivername.startswith("sqlite") and engine.url.database:
        pathlib.Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)

    if args.reset:
        Base.metadata.drop_all(bind=engine)
        logger.info("Dropped all tables")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        if db.query(Rooms).count():
            logger.info("Catalog already present, skipping seed (use --reset to reseed)")
            return
        seed(db, args.days)
    finally:
        db.close()


if __name__ == "__main__":
    main()
