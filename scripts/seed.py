"""
Storefront - Development Seeder
=================================
Creates an admin, a customer and a few products, then prints bearer tokens
for both users (identity is issued elsewhere in production).

Usage:
    python scripts/seed.py          # Seed (idempotent)
    python scripts/seed.py --reset  # Drop all tables and reseed
"""

import sys
import os
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import SessionLocal, Base, engine  # noqa: E402
from common.security import create_token  # noqa: E402
from modules.user.models import User, UserRole  # noqa: E402
from modules.catalog.models import Product  # noqa: E402
from modules.cart.models import Cart, CartItem  # noqa: F401,E402
from modules.order.models import Order, OrderItem  # noqa: F401,E402

USERS = [
    {"name": "Store Admin", "email": "admin@example.com", "role": UserRole.ADMIN.value},
    {"name": "Test Customer", "email": "customer@example.com", "role": UserRole.USER.value},
]

PRODUCTS = [
    {"name": "Wireless Mouse", "category": "electronics", "price": Decimal("24.99"), "stock": 50,
     "description": "2.4 GHz wireless mouse with USB receiver."},
    {"name": "Mechanical Keyboard", "category": "electronics", "price": Decimal("89.00"), "stock": 20,
     "description": "Tenkeyless keyboard with brown switches."},
    {"name": "Cotton T-Shirt", "category": "clothing", "price": Decimal("15.50"), "stock": 100,
     "description": "Plain crew neck, 100% cotton."},
    {"name": "Espresso Beans 1kg", "category": "grocery", "price": Decimal("21.00"), "stock": 5,
     "description": "Dark roast whole beans."},
]


def seed():
    db = SessionLocal()
    try:
        print("=" * 50)
        print("  Storefront - Development Seeder")
        print("=" * 50)

        print("\n[1/2] Users")
        users = {}
        for data in USERS:
            user = db.query(User).filter(User.email == data["email"]).first()
            if user:
                print(f"  = exists: {data['email']}")
            else:
                user = User(**data)
                db.add(user)
                db.flush()
                print(f"  + {data['role']}: {data['email']}")
            users[data["role"]] = user

        print("\n[2/2] Products")
        admin = users[UserRole.ADMIN.value]
        for data in PRODUCTS:
            if db.query(Product).filter(Product.name == data["name"]).first():
                print(f"  = exists: {data['name']}")
                continue
            db.add(Product(user_id=admin.id, **data))
            print(f"  + {data['name']} ({data['price']}, stock={data['stock']})")

        db.commit()

        print("\nBearer tokens:")
        for role, user in users.items():
            print(f"  {role:<6} {create_token({'sub': str(user.id)})}")
        print("\nSeed complete!")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    if "--reset" in sys.argv:
        print("Dropping all tables...")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    seed()
