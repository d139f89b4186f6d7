"""
Django settings for the travel blog recommendation backend.

All domain data lives in MongoDB and is accessed through mongoengine;
no relational database is configured.
"""
import os
from pathlib import Path

import mongoengine

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'insecure-dev-key-change-me')

DEBUG = os.environ.get('DJANGO_DEBUG', 'false').lower() == 'true'

ALLOWED_HOSTS = os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost').split(',')

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'rest_framework',
    'user',
    'community',
    'locations',
    'trips',
    'recommendations',
]

# Documents are stored in MongoDB (see MONGODB below)
DATABASES = {}

USE_TZ = True
TIME_ZONE = 'UTC'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# MongoDB
MONGODB = {
    'db': os.environ.get('MONGODB_NAME', 'travel_blog'),
    'host': os.environ.get('MONGODB_HOST', 'mongodb://localhost:27017'),
    'tz_aware': True,
}

mongoengine.connect(**MONGODB)


# Recommendation engine
RECOMMENDATIONS = {
    'WEIGHTS': {
        'similarity': 0.30,
        'popularity': 0.20,
        'recency': 0.15,
        'location': 0.15,
        'interests': 0.20,
        'base_score': 0.5,
        'budget_match': 0.3,
    },
    'COLLECTOR_WORKERS': int(os.environ.get('RECOMMENDATION_COLLECTOR_WORKERS', 4)),
    'GENERATION_TIMEOUT': float(os.environ.get('RECOMMENDATION_GENERATION_TIMEOUT', 30)),
    'TTL_DAYS': 7,
    'REFRESH_AGE_HOURS': 24,
    'DEFAULT_PAGE_SIZE': 20,
    'MAX_PAGE_SIZE': 100,
}


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.environ.get('DJANGO_LOG_LEVEL', 'INFO'),
    },
    'loggers': {
        'recommendations': {
            'handlers': ['console'],
            'level': os.environ.get('RECOMMENDATION_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
