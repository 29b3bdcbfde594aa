"""Database management utility script.

Usage:
    python scripts/db_manager.py init      # Create missing tables
    python scripts/db_manager.py inspect   # Show tables, columns and row counts
    python scripts/db_manager.py reset     # Drop and recreate all tables
"""
import sys
import argparse
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import inspect, select, func, table
from sqlalchemy.exc import SQLAlchemyError
from inbox.config import get_settings
from inbox.database import engine, init_database as create_tables, reset_database as recreate_tables

settings = get_settings()


def init_database():
    """Create every inbox table that does not exist yet."""
    print("Initializing database...")
    print(f"\nDatabase URL: {settings.DATABASE_URL}")
    print("\n" + "=" * 60)
    create_tables()
    for table_name in sorted(inspect(engine).get_table_names()):
        print(f"  ✓ {table_name}")
    print("=" * 60)
    print("\n✓ Database initialization completed!")


def inspect_database():
    """Inspect and display database schema information."""
    inspector = inspect(engine)
    table_names = sorted(inspector.get_table_names())

    print(f"Database: {settings.DATABASE_URL}")
    print("=" * 80)

    if not table_names:
        print("No tables found in database.")
        print("Run 'python scripts/db_manager.py init' to create them.")
        return

    print(f"\nTables found: {len(table_names)}")
    print("-" * 80)

    try:
        with engine.connect() as conn:
            for table_name in table_names:
                print(f"\n📊 Table: {table_name}")
                print("-" * 80)

                print(f"{'Column':<25} {'Type':<15} {'Nullable':<10} {'Default':<15}")
                print("-" * 80)
                for col in inspector.get_columns(table_name):
                    print(
                        f"{col['name']:<25} {str(col['type']):<15} "
                        f"{str(col['nullable']):<10} {str(col.get('default')):<15}"
                    )

                count = conn.execute(select(func.count()).select_from(table(table_name))).scalar()
                print(f"\nRows: {count}")

                fks = inspector.get_foreign_keys(table_name)
                if fks:
                    print("\nForeign Keys:")
                    for fk in fks:
                        ondelete = (fk.get("options") or {}).get("ondelete", "NO ACTION")
                        print(
                            f"  → {fk['referred_table']}.{', '.join(fk['referred_columns'])} "
                            f"(on {', '.join(fk['constrained_columns'])}, delete {ondelete})"
                        )

                indexes = inspector.get_indexes(table_name)
                if indexes:
                    print("\nIndexes:")
                    for idx in indexes:
                        unique = " (unique)" if idx.get("unique") else ""
                        print(f"  • {idx['name']}{unique}")

        print("\n" + "=" * 80)
        print("✓ Inspection complete")

    except SQLAlchemyError as e:
        print(f"✗ Error inspecting database: {e}")


def reset_database():
    """Reset database by dropping all tables and recreating them."""
    # Ask for confirmation
    print("⚠️  WARNING: This will delete ALL inbox data in the database!")
    response = input("Type 'yes' to continue: ")

    if response.lower() != 'yes':
        print("Reset cancelled.")
        return

    print("\n" + "=" * 60)
    recreate_tables()
    print("=" * 60)
    print("\n✓ Database reset completed!")


def main():
    """Main entry point for the database manager."""
    parser = argparse.ArgumentParser(
        description="Database management utility for the inbox service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/db_manager.py init      # Create missing tables
  python scripts/db_manager.py inspect   # Inspect database schema
  python scripts/db_manager.py reset     # Reset database (with confirmation)
        """
    )

    parser.add_argument(
        'action',
        choices=['init', 'inspect', 'reset'],
        help='Action to perform on the database'
    )

    args = parser.parse_args()

    try:
        if args.action == 'init':
            init_database()
        elif args.action == 'inspect':
            inspect_database()
        elif args.action == 'reset':
            reset_database()
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        sys.exit(1)
    except Exception as e:
        print(f"\n✗ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
