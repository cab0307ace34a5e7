"""
Initialize the summary database: creates all tables.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text

from alarm_backup.config import settings
from alarm_backup.database import create_tables, engine


def main():
    print("🗄️  Alarm Backup DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nCheck DATABASE_URL in .env (default: sqlite:///./alarm_events.db)")
        sys.exit(1)

    # Create all tables
    print("\n📋 Creating tables...")
    create_tables()
    print("✅ All tables created")

    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn alarm_backup.main:app --host 0.0.0.0 --port 8080")
    print("   python -m alarm_backup.worker   # queue worker, outside Lambda")


if __name__ == "__main__":
    main()
