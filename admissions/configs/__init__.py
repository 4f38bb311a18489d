#!/usr/bin/env python

"""
    Configurations for Admissions

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import os


# Determine environment
TESTING = os.getenv("TESTING", "false").lower() == "true"

# API server configuration
HOST = os.environ.get('ADMISSIONS_HOST', 'localhost')
PORT = int(os.environ.get('ADMISSIONS_PORT', 8080))
WORKERS = int(os.environ.get('ADMISSIONS_WORKERS', 1))
DEBUG = bool(int(os.environ.get('ADMISSIONS_DEBUG', 0)))
LOG_LEVEL = os.environ.get('ADMISSIONS_LOG_LEVEL', 'info')
SSL_CRT = os.environ.get('ADMISSIONS_SSL_CRT')
SSL_KEY = os.environ.get('ADMISSIONS_SSL_KEY')
CORS_ORIGINS = [o.strip() for o in os.environ.get('ADMISSIONS_CORS_ORIGINS', 'http://localhost:3000').split(',') if o.strip()]

OPTIONS = {
    'host': HOST,
    'port': PORT,
    'log_level': LOG_LEVEL,
    'reload': DEBUG,
    'workers': WORKERS,
}
if SSL_CRT and SSL_KEY:
    OPTIONS['ssl_keyfile'] = SSL_KEY
    OPTIONS['ssl_certfile'] = SSL_CRT

DB_CONFIG = {
    'user': os.environ.get('DB_USER', 'postgres'),
    'password': os.environ.get('DB_PASSWORD'),
    'host': os.environ.get('DB_HOST', 'localhost'),
    'port': int(os.environ.get('DB_PORT', '5432')),
    'dbname': os.environ.get('DB_NAME', 'admissions'),
}

# Database configuration
DB_URI = (
    "sqlite:///:memory:" if TESTING else
    'postgresql+psycopg2://{user}:{password}@{host}:{port}/{dbname}'.format(**DB_CONFIG)
)

# Waitlist engine
WAITLIST_LOCK_TIMEOUT = float(os.environ.get('WAITLIST_LOCK_TIMEOUT', 10))
DEFAULT_LEAD_SCORE = int(os.environ.get('DEFAULT_LEAD_SCORE', 50))
DEFAULT_PROGRAM = os.environ.get('DEFAULT_PROGRAM', 'general')
QUEUE_DEFAULT_LIMIT = int(os.environ.get('QUEUE_DEFAULT_LIMIT', 100))
QUEUE_MAX_LIMIT = int(os.environ.get('QUEUE_MAX_LIMIT', 500))

__all__ = [
    'HOST', 'PORT', 'DEBUG', 'LOG_LEVEL', 'CORS_ORIGINS', 'OPTIONS', 'DB_URI', 'DB_CONFIG', 'TESTING',
    'WAITLIST_LOCK_TIMEOUT', 'DEFAULT_LEAD_SCORE', 'DEFAULT_PROGRAM',
    'QUEUE_DEFAULT_LIMIT', 'QUEUE_MAX_LIMIT',
]
