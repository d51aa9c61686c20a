#!/usr/bin/env python3
"""
Script to create the search tables (and, in development, the content tables).
"""
import asyncio
import sys
from pathlib import Path

# Add the backend directory to Python path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from intranet_search.database import create_tables, engine

async def main():
    """Create all database tables."""
    try:
        print("Creating database tables...")
        await create_tables()
        print("Database tables created successfully!")
    except Exception as e:
        print(f"Error creating tables: {e}")
        return 1
    finally:
        await engine.dispose()
    return 0

if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
