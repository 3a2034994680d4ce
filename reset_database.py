#!/usr/bin/env python3
"""
Database Reset Script
Clears the pool database, re-creates an empty tree and optionally funds accounts

Usage:
    python reset_database.py [account=balance ...]
"""

import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from zkpool.config import configure_logging, get_settings
from zkpool.core.pool import ShieldedPool
from zkpool.storage.database import SqlHost, get_db_manager

logger = logging.getLogger("reset_database")


def reset_database(funded_accounts):
    """Drop every table, re-create the schema and initialize the pool."""
    settings = get_settings()
    db = get_db_manager(settings.database_url)

    logger.warning("Dropping all tables in %s", settings.database_url)
    db.drop_tables()
    db.create_tables()

    host = SqlHost(db, authorities=[settings.authority])
    pool = ShieldedPool(
        authority=settings.authority,
        host=host,
        tree_height=settings.tree_height,
        root_history_size=settings.root_history_size,
    )
    pool.initialize_pool()

    for account, balance in funded_accounts.items():
        host.ledger.credit(account, balance)
        logger.info("Funded %s with %d", account, balance)

    state = pool.get_pool_state()
    logger.info("Pool initialized: height=%d root=%s", state.tree_height, state.to_dict()["merkle_root"])


def parse_accounts(args):
    accounts = {}
    for arg in args:
        account, _, balance = arg.partition("=")
        accounts[account] = int(balance)
    return accounts


if __name__ == "__main__":
    configure_logging()
    try:
        reset_database(parse_accounts(sys.argv[1:]))
    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        sys.exit(1)
    except Exception as e:
        logger.error("Fatal error: %s", e)
        sys.exit(1)
