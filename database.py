"""
MongoDB connection for the storefront.

The connection is configured from DATABASE_URL and DATABASE_NAME. When either
is missing `db` stays None and routes that need storage answer with a 500.
"""
import os
from datetime import datetime, timezone
from typing import Union

from pydantic import BaseModel
from pymongo import MongoClient

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

client = None
db = None

if database_url and database_name:
    client = MongoClient(database_url)
    db = client[database_name]


def create_document(database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id"""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()
    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)
