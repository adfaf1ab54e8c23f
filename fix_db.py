"""
Script to rebuild the SQL store by recreating its tables
Run this if the schema in models.py changed under an existing meditrack.db
"""
import logging

from app import create_app
from models import db
from seed import seed_sample_data

logger = logging.getLogger('fix_db')


def rebuild(app):
    with app.app_context():
        # Drop all tables (WARNING: This will delete all data!)
        logger.info('[DB] Dropping all tables...')
        db.drop_all()

        logger.info('[DB] Creating all tables...')
        db.create_all()

        logger.info('[DB] Seeding sample data...')
        seed_sample_data(app.extensions['meditrack.repos'])


if __name__ == '__main__':
    rebuild(create_app({'STORE_BACKEND': 'sql', 'SEED_SAMPLE_DATA': False}))
    logger.info('Database rebuilt. All previous data has been deleted.')
