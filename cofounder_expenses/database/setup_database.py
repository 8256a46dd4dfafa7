"""
Database Setup Script
Creates all tables and seeds a demo company with expenses in every stage
"""

import sys
from datetime import timedelta
from decimal import Decimal

from cofounder_expenses.config.database import SessionLocal, init_db
from cofounder_expenses.models.company import Company
from cofounder_expenses.models.user import User, UserRole
from cofounder_expenses.schemas.expense import ExpenseCreate
from cofounder_expenses.schemas.user import MemberCreate, SignupRequest
from cofounder_expenses.services.company_service import company_service
from cofounder_expenses.services.expense_service import expense_service
from cofounder_expenses.utils.helpers import utcnow

DEMO_PASSWORD = "password123"


def create_tables():
    """Create all database tables"""
    print("Creating database tables...")
    init_db()
    print("✓ Database tables created successfully")


def create_demo_company(db) -> dict:
    """Demo company with three founders and one member"""
    print("\nCreating demo company...")

    existing = db.query(User).filter(User.email == "alice@example.com").first()
    if existing:
        print("✓ Demo company already exists, skipping...")
        return {}

    alice = company_service.signup(db, SignupRequest(
        email="alice@example.com",
        name="Alice Founder",
        password=DEMO_PASSWORD,
        company_name="Acme Labs",
        currency="USD",
    ))
    bob = company_service.add_member(db, alice, MemberCreate(
        email="bob@example.com", name="Bob Founder", password=DEMO_PASSWORD, role=UserRole.FOUNDER
    ))
    carol = company_service.add_member(db, alice, MemberCreate(
        email="carol@example.com", name="Carol Founder", password=DEMO_PASSWORD, role=UserRole.FOUNDER
    ))
    dave = company_service.add_member(db, alice, MemberCreate(
        email="dave@example.com", name="Dave Member", password=DEMO_PASSWORD, role=UserRole.MEMBER
    ))

    print(f"✓ Created company {alice.company.name} with 3 founders and 1 member")
    return {"alice": alice, "bob": bob, "carol": carol, "dave": dave}


def create_sample_expenses(db, users: dict):
    """Walk a few expenses through the workflow so every status is represented"""
    if not users:
        return

    print("\nCreating sample expenses...")
    alice, bob, carol, dave = users["alice"], users["bob"], users["carol"], users["dave"]
    today = utcnow().date()

    def submit(owner, amount, category, description, days_ago):
        return expense_service.submit_expense(db, owner, ExpenseCreate(
            amount=Decimal(amount),
            category=category,
            date=today - timedelta(days=days_ago),
            description=description,
        )).expense

    # Pending: one of two approvals in
    pending = submit(alice, "42.50", "SOFTWARE", "Design tool subscription", 3)
    expense_service.approve(db, bob, pending.id)

    # Rejected
    rejected = submit(dave, "310.00", "TRAVEL", "Conference hotel upgrade", 10)
    expense_service.reject(db, alice, rejected.id, "Not covered by the travel policy")

    # Approved, then withdrawal requested
    owed = submit(bob, "120.00", "HARDWARE", "USB-C hubs for the office", 20)
    for founder in (alice, carol):
        expense_service.approve(db, founder, owed.id)
    expense_service.request_withdrawal(db, bob, owed.id)

    # Fully reimbursed
    done = submit(dave, "75.25", "FOOD", "Team lunch with candidate", 30)
    for founder in (alice, bob, carol):
        expense_service.approve(db, founder, done.id)
    expense_service.request_withdrawal(db, dave, done.id)
    for founder in (alice, bob, carol):
        expense_service.approve_withdrawal(db, founder, done.id)
    expense_service.confirm_receipt(db, dave, done.id)

    print("✓ Created 4 sample expenses")


def print_setup_summary(db):
    """Print what was seeded"""
    print("\n" + "=" * 70)
    print("SETUP SUMMARY")
    print("=" * 70)
    for company in db.query(Company).all():
        print(f"\nCompany: {company.name} ({company.currency})")
        for user in company.users:
            print(f"  {user.role.value:<8} {user.email:<24} {len(user.expenses)} expense(s)")
    print(f"\nAll demo accounts use the password: {DEMO_PASSWORD}")


def main():
    """Main setup function"""
    print("=" * 70)
    print("CO-FOUNDER EXPENSES - DATABASE SETUP")
    print("=" * 70)

    db = SessionLocal()
    try:
        create_tables()
        users = create_demo_company(db)
        create_sample_expenses(db, users)
        print_setup_summary(db)

    except Exception as e:
        print(f"\n✗ Database setup failed: {str(e)}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
