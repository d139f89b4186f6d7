"""
Test settings: MongoDB is replaced by an in-memory mongomock client.
"""
import mongomock
import mongoengine

from .settings import *  # noqa: F401,F403
from .settings import MONGODB, RECOMMENDATIONS

mongoengine.disconnect()

MONGODB = {
    **MONGODB,
    'db': 'travel_blog_test',
    'host': 'mongodb://localhost',
    'mongo_client_class': mongomock.MongoClient,
}

mongoengine.connect(**MONGODB)

# Collectors run one at a time against the in-memory store
RECOMMENDATIONS = {
    **RECOMMENDATIONS,
    'COLLECTOR_WORKERS': 1,
    'GENERATION_TIMEOUT': 10,
}
