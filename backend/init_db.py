#!/usr/bin/env python3
"""
Initialize/recreate database tables from models
"""
from database import engine, Base
from models import (
    User, UserGroupRef, ExpenseGroup, GroupMember, ExpenseLine, ExpenseSplit,
    PasswordResetOtp, Post, PostLike
)

if __name__ == "__main__":
    print("Creating all database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Database tables created successfully!")
