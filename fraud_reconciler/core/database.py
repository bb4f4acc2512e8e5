"""Document store connection management."""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import OperationFailure, PyMongoError

from fraud_reconciler.core.config import MongoConfig
from fraud_reconciler.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def create_mongo_client(config: MongoConfig) -> AsyncIOMotorClient:
    """Create the async MongoDB client for a run."""
    client = AsyncIOMotorClient(
        config.url,
        serverSelectionTimeoutMS=config.server_selection_timeout_ms,
    )
    logger.info(
        "MongoDB client created",
        extra={"database": config.database},
    )
    return client


async def connect_database(client: AsyncIOMotorClient, config: MongoConfig) -> AsyncIOMotorDatabase:
    """Ping the server and return the configured database.

    Raises:
        StoreUnavailableError: if the server is unreachable or rejects credentials
    """
    database = client[config.database]
    try:
        await database.command("ping")
    except OperationFailure as e:
        raise StoreUnavailableError(
            "MongoDB authentication failed", details={"database": config.database, "error": str(e)}
        ) from e
    except PyMongoError as e:
        raise StoreUnavailableError(
            "MongoDB server not available", details={"database": config.database, "error": str(e)}
        ) from e

    logger.info("Connected to MongoDB", extra={"database": config.database})
    return database


def close_mongo_client(client: AsyncIOMotorClient) -> None:
    """Close the MongoDB client."""
    client.close()
    logger.info("MongoDB connection closed")
