# checkout/db/session.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from checkout.core.config import settings

# The engine is the entry point to the hosted database. Connections are only
# opened on first use, so importing this module never touches the network.
engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

