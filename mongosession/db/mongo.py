from __future__ import annotations
import logging
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, InvalidName
from pymongo.write_concern import WriteConcern
from typing import TypedDict

from mongosession.app.errors import ConfigError
from mongosession.app.settings import Settings

logger = logging.getLogger(__name__)

EXPIRY_INDEX = "expiry"
ID_LOCK_INDEX = "_id_lock"


class MongoHandles(TypedDict):
    client: MongoClient
    db: Database
    sessions: Collection


def connect_mongo(settings: Settings) -> MongoHandles:
    client: MongoClient = MongoClient(settings.mongo_uri(), **settings.client_options())
    try:
        client.admin.command("ping")
    except ConnectionFailure as e:
        client.close()
        raise ConfigError("Can't connect to the MongoDB server.") from e

    try:
        db = client[settings.database]
        # journaled, acknowledged writes for every session mutation
        sessions = db.get_collection(
            settings.collection,
            write_concern=WriteConcern(w=1, j=settings.write_journal),
        )
    except InvalidName as e:
        client.close()
        raise ConfigError(f"Invalid MongoDB database/collection name: {e}") from e

    logger.info("connected to %s.%s", settings.database, settings.collection)
    return {
        "client": client,
        "db": db,
        "sessions": sessions,
    }

def ensure_indexes(sessions: Collection) -> None:
    # many sessions share an expiry second, so this one is not unique
    sessions.create_index([("expiry", ASCENDING)], name=EXPIRY_INDEX, sparse=True)
    sessions.create_index([("_id", ASCENDING), ("lock", ASCENDING)], name=ID_LOCK_INDEX, unique=True)
