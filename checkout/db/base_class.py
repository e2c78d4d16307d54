# checkout/db/base_class.py

from sqlalchemy.orm import declarative_base

# Shared declarative base for the checkout tables (coupons, gift coupons,
# plan features, Discord users, dev permissions).
Base = declarative_base()
