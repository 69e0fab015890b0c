"""Initialize database (create tables). Run: python backend/init_db.py"""
from charity_receipts.database import engine, Base
from charity_receipts import donation_models  # noqa: F401  registers the tables


def init():
    Base.metadata.create_all(bind=engine)


if __name__ == '__main__':
    print('Initializing DB...')
    init()
    print('DB initialized.')
