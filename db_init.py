# db_init.py
import argparse
from pathlib import Path

from werkzeug.security import generate_password_hash

from config import Config
from models import Base, User, make_engine, make_session_factory

def main(argv=None):
    parser = argparse.ArgumentParser(description="Create tables and storage folders.")
    parser.add_argument("--admin", type=str, default="", help="Also create this user if it does not exist.")
    parser.add_argument("--password", type=str, default="changeme", help="Password for --admin.")
    args = parser.parse_args(argv)

    # Ensure instance/ exists for SQLite local dev
    db_uri = Config.SQLALCHEMY_DATABASE_URI
    if db_uri.startswith("sqlite:///"):
        Path(db_uri.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)

    # PDFs from bulk exports, uploaded logos
    Path(Config.EXPORTS_DIR).mkdir(parents=True, exist_ok=True)
    Path(Config.UPLOADS_DIR).mkdir(parents=True, exist_ok=True)

    engine = make_engine(db_uri, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)

    if args.admin:
        with make_session_factory(engine)() as s:
            if not s.query(User).filter(User.username == args.admin).first():
                s.add(User(username=args.admin, password_hash=generate_password_hash(args.password)))
                s.commit()
                print(f"Created user {args.admin}")

    print("✅ Database initialized.")
    print(f"DB: {db_uri}")
    print(f"Exports dir: {Config.EXPORTS_DIR}")
    print(f"Uploads dir: {Config.UPLOADS_DIR}")

if __name__ == "__main__":
    main()
