"""Command line interface for setting up the database.

Usage:
    python -m database
"""
import asyncio
import logging
import sys

from config import SettingsError
from . import setup_database, DatabaseError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def main() -> int:
    """Run the setup and return the process exit status."""
    try:
        report = asyncio.run(setup_database())
    except (DatabaseError, SettingsError) as e:
        logger.error(f"Error setting up database: {e}")
        return 1

    triggers = report['triggers']
    logger.info(
        f"Tables: {len(report['tables_created'])} created, "
        f"{len(report['tables_existing'])} already present; "
        f"triggers: {len(triggers['created'])} created, "
        f"{len(triggers['replaced'])} replaced, {len(triggers['dropped'])} dropped"
    )

    print("\nDatabase setup completed successfully!")
    print("You can now start your application.")
    return 0

if __name__ == "__main__":
    sys.exit(main())
