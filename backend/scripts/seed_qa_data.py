#!/usr/bin/env python3
"""
QA Data Seed Script
Creates employees, QA module access, team memberships and sample releases
for a local QA Release Tracker database.

Usage:
    python -m scripts.seed_qa_data [--hash-passwords]

With --hash-passwords the employee passwords are stored as bcrypt hashes;
run the API with CREDENTIAL_STRATEGY=bcrypt in that case.
"""
import sys
import os
from datetime import date, timedelta

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from app.config import get_settings
from app.database import SessionLocal, init_db
from app.models.db_models import (
    EmployeeDB, ModuleAccessDB, TeamMemberDB, DailyReleaseDB,
    EmployeeStatus, GRANTED_ACCESS_CODE, DENIED_ACCESS_CODE,
)
from app.services.access import hash_password

DEFAULT_PASSWORD = "qa@123"

# (emp_code, name, sub_team or None, QA access)
TESTERS = [
    (2001, "ANJALI R", 1, True),
    (2002, "ARUN KUMAR", 1, True),
    (2003, "DEEPA MOHAN", 2, True),
    (2004, "FATHIMA S", 3, True),
    (2005, "GOKUL DAS", 4, True),
    (2006, "HARI PRASAD", 5, True),
    (2007, "KAVYA NAIR", 6, True),
    (3001, "RAHUL VARMA", None, False),
]


def _employee(db: Session, emp_code: int, name: str, password: str) -> EmployeeDB:
    existing = db.get(EmployeeDB, emp_code)
    if existing:
        return existing
    employee = EmployeeDB(
        emp_code=emp_code,
        emp_name=name,
        password=password,
        status_id=EmployeeStatus.ACTIVE,
    )
    db.add(employee)
    return employee


def _grant(db: Session, emp_code: int, module_code: str, granted: bool) -> None:
    access = db.get(ModuleAccessDB, (emp_code, module_code))
    code = GRANTED_ACCESS_CODE if granted else DENIED_ACCESS_CODE
    if access:
        access.access_code = code
    else:
        db.add(ModuleAccessDB(emp_code=emp_code, module_code=module_code, access_code=code))


def _member(db: Session, team_id: int, sub_team: int, emp_code: int) -> None:
    exists = db.query(TeamMemberDB).filter(
        TeamMemberDB.team_id == team_id,
        TeamMemberDB.member_id == emp_code,
    ).first()
    if not exists:
        db.add(TeamMemberDB(team_id=team_id, sub_team=sub_team, member_id=emp_code))


def seed(hash_passwords: bool = False) -> bool:
    """Seed the database. Safe to run repeatedly."""
    settings = get_settings()
    init_db()

    password = hash_password(DEFAULT_PASSWORD) if hash_passwords else DEFAULT_PASSWORD

    db: Session = SessionLocal()
    try:
        # Tech leads: emp codes 1001.. in roster order
        leads = sorted(settings.team_roster.items())
        for offset, (sub_team, lead_name) in enumerate(leads):
            emp_code = 1001 + offset
            _employee(db, emp_code, lead_name, password)
            _grant(db, emp_code, settings.qa_module_code, True)
            _member(db, settings.qa_team_id, sub_team, emp_code)

        for emp_code, name, sub_team, qa_access in TESTERS:
            _employee(db, emp_code, name, password)
            _grant(db, emp_code, settings.qa_module_code, qa_access)
            if sub_team is not None:
                _member(db, settings.qa_team_id, sub_team, emp_code)
        db.flush()

        if db.query(DailyReleaseDB).count() == 0:
            today = date.today()
            lead_names = [name for _, name in leads]
            for i, (emp_code, tester, sub_team, _) in enumerate(TESTERS[:7]):
                db.add(DailyReleaseDB(
                    crf_id=f"CRF{1000 + i}",
                    request_id=f"REQ{5000 + i}",
                    crf_name=f"Sample change request {i + 1}",
                    release_date=today - timedelta(days=i % 3),
                    release_type="Regular" if i % 2 == 0 else "Hotfix",
                    techlead_name=settings.team_roster.get(sub_team, lead_names[0]),
                    developer_name="RAHUL VARMA",
                    tester_tl_name=settings.team_roster.get(sub_team, ""),
                    tester_name=tester if i != 6 else "",
                ))

        db.commit()
        print("QA data seeded successfully!")
        print(f"  Tech leads: {len(leads)}")
        print(f"  Testers: {len(TESTERS)}")
        print(f"  Default password: {DEFAULT_PASSWORD}")
        return True

    except Exception as e:
        print(f"Error seeding QA data: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    args = sys.argv[1:]
    if args and args != ["--hash-passwords"]:
        print(__doc__)
        sys.exit(1)

    success = seed(hash_passwords=bool(args))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
