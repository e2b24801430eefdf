"""Document CRUD, query and atomic find-and-modify operations."""

import logging

from pymongo import (
    DeleteMany,
    DeleteOne,
    InsertOne,
    ReplaceOne,
    ReturnDocument,
    UpdateMany,
    UpdateOne,
)

from docstore_server.core.session import ConnectionSession
from docstore_server.models.params import (
    BulkOperation,
    BulkWriteParams,
    CountParams,
    DeleteParams,
    DistinctParams,
    FindManyParams,
    FindOneAndDeleteParams,
    FindOneAndUpdateParams,
    FindOneParams,
    InsertManyParams,
    InsertOneParams,
    UpdateParams,
)
from docstore_server.models.results import OperationResult
from docstore_server.operations.registry import get_collection, registry, sort_pairs

logger = logging.getLogger(__name__)


def _update_data(result) -> dict:
    return {
        "matched_count": result.matched_count,
        "modified_count": result.modified_count,
        "upserted_id": result.upserted_id,
    }


def _update_summary(result) -> str:
    summary = f"Updated {result.modified_count} document(s)"
    if result.upserted_id is not None:
        summary += f", upserted document with ID: {result.upserted_id}"
    return summary


@registry.operation("insert-document", InsertOneParams, tags=("documents",))
async def insert_document(
    session: ConnectionSession, params: InsertOneParams
) -> OperationResult:
    """Insert a single document into a collection."""
    collection = get_collection(session, params)
    result = await collection.insert_one(params.document)
    logger.debug(f"Inserted {result.inserted_id} into {params.target()}")
    return OperationResult(
        operation="insert-document",
        summary=f"Inserted document with ID: {result.inserted_id}",
        data={"inserted_id": result.inserted_id},
    )


@registry.operation("insert-documents", InsertManyParams, tags=("documents",))
async def insert_documents(
    session: ConnectionSession, params: InsertManyParams
) -> OperationResult:
    """Insert multiple documents into a collection."""
    collection = get_collection(session, params)
    result = await collection.insert_many(
        params.documents, ordered=params.ordered
    )
    return OperationResult(
        operation="insert-documents",
        summary=f"Inserted {len(result.inserted_ids)} documents",
        data={
            "inserted_count": len(result.inserted_ids),
            "inserted_ids": result.inserted_ids,
        },
    )


@registry.operation("update-document", UpdateParams, tags=("documents",))
async def update_document(
    session: ConnectionSession, params: UpdateParams
) -> OperationResult:
    """Update the first document matching a filter."""
    collection = get_collection(session, params)
    result = await collection.update_one(
        params.filter,
        params.update,
        upsert=params.upsert,
    )
    return OperationResult(
        operation="update-document",
        summary=_update_summary(result),
        data=_update_data(result),
    )


@registry.operation("update-documents", UpdateParams, tags=("documents",))
async def update_documents(
    session: ConnectionSession, params: UpdateParams
) -> OperationResult:
    """Update every document matching a filter."""
    collection = get_collection(session, params)
    result = await collection.update_many(
        params.filter,
        params.update,
        upsert=params.upsert,
    )
    return OperationResult(
        operation="update-documents",
        summary=_update_summary(result),
        data=_update_data(result),
    )


@registry.operation("delete-document", DeleteParams, tags=("documents",))
async def delete_document(
    session: ConnectionSession, params: DeleteParams
) -> OperationResult:
    """Delete the first document matching a query."""
    collection = get_collection(session, params)
    result = await collection.delete_one(params.query)
    return OperationResult(
        operation="delete-document",
        summary=f"Deleted {result.deleted_count} document(s)",
        data={"deleted_count": result.deleted_count},
    )


@registry.operation("delete-documents", DeleteParams, tags=("documents",))
async def delete_documents(
    session: ConnectionSession, params: DeleteParams
) -> OperationResult:
    """Delete every document matching a query."""
    collection = get_collection(session, params)
    result = await collection.delete_many(params.query)
    return OperationResult(
        operation="delete-documents",
        summary=f"Deleted {result.deleted_count} document(s)",
        data={"deleted_count": result.deleted_count},
    )


@registry.operation("find-document", FindOneParams, tags=("documents",))
async def find_document(
    session: ConnectionSession, params: FindOneParams
) -> OperationResult:
    """Find a single document matching a query."""
    collection = get_collection(session, params)
    document = await collection.find_one(
        params.query, projection=params.projection
    )
    summary = "Found document:" if document is not None else "No matching document"
    return OperationResult(operation="find-document", summary=summary, data=document)


@registry.operation("find-documents", FindManyParams, tags=("documents",))
async def find_documents(
    session: ConnectionSession, params: FindManyParams
) -> OperationResult:
    """Find documents with optional projection, sort, skip and limit."""
    collection = get_collection(session, params)
    cursor = collection.find(
        params.query,
        projection=params.projection,
        sort=sort_pairs(params.sort),
        skip=params.skip,
        limit=params.limit,
        max_time_ms=params.max_time_ms,
    )
    documents = await cursor.to_list(length=None)
    return OperationResult(
        operation="find-documents",
        summary=f"Found {len(documents)} document(s):",
        data=documents,
    )


@registry.operation("count-documents", CountParams, tags=("documents",))
async def count_documents(
    session: ConnectionSession, params: CountParams
) -> OperationResult:
    """Count the documents matching a query."""
    collection = get_collection(session, params)
    count = await collection.count_documents(params.query)
    return OperationResult(
        operation="count-documents",
        summary=f"Total documents: {count}",
        data={"count": count},
    )


@registry.operation("distinct-values", DistinctParams, tags=("documents",))
async def distinct_values(
    session: ConnectionSession, params: DistinctParams
) -> OperationResult:
    """List the distinct values of a field."""
    collection = get_collection(session, params)
    values = await collection.distinct(params.field, params.query)
    rendered = ", ".join(str(value) for value in values)
    return OperationResult(
        operation="distinct-values",
        summary=f"Distinct values for {params.field}: {rendered}",
        data=values,
    )


@registry.operation("find-one-and-update", FindOneAndUpdateParams, tags=("documents",))
async def find_one_and_update(
    session: ConnectionSession, params: FindOneAndUpdateParams
) -> OperationResult:
    """Atomically update one document and return it."""
    collection = get_collection(session, params)
    document = await collection.find_one_and_update(
        params.filter,
        params.update,
        projection=params.projection,
        sort=sort_pairs(params.sort),
        upsert=params.upsert,
        return_document=(
            ReturnDocument.AFTER
            if params.return_document == "after"
            else ReturnDocument.BEFORE
        ),
    )
    if document is None:
        summary = "No matching document"
    else:
        summary = f"Updated document ({params.return_document} update):"
    return OperationResult(
        operation="find-one-and-update", summary=summary, data=document
    )


@registry.operation("find-one-and-delete", FindOneAndDeleteParams, tags=("documents",))
async def find_one_and_delete(
    session: ConnectionSession, params: FindOneAndDeleteParams
) -> OperationResult:
    """Atomically delete one document and return it."""
    collection = get_collection(session, params)
    document = await collection.find_one_and_delete(
        params.filter,
        projection=params.projection,
        sort=sort_pairs(params.sort),
    )
    summary = "Deleted document:" if document is not None else "No matching document"
    return OperationResult(
        operation="find-one-and-delete", summary=summary, data=document
    )


def bulk_request(operation: BulkOperation):
    """Translate one bulk entry into the driver's request object."""
    if operation.op == "insert_one":
        return InsertOne(operation.document)
    if operation.op == "update_one":
        return UpdateOne(
            operation.filter,
            operation.update,
            upsert=operation.upsert,
        )
    if operation.op == "update_many":
        return UpdateMany(
            operation.filter,
            operation.update,
            upsert=operation.upsert,
        )
    if operation.op == "replace_one":
        return ReplaceOne(
            operation.filter,
            operation.replacement,
            upsert=operation.upsert,
        )
    if operation.op == "delete_one":
        return DeleteOne(operation.filter)
    return DeleteMany(operation.filter)


@registry.operation("bulk-write", BulkWriteParams, tags=("documents",))
async def bulk_write(
    session: ConnectionSession, params: BulkWriteParams
) -> OperationResult:
    """Run a batch of insert, update, replace and delete requests."""
    collection = get_collection(session, params)
    result = await collection.bulk_write(
        [bulk_request(operation) for operation in params.operations],
        ordered=params.ordered,
    )
    data = {
        "inserted_count": result.inserted_count,
        "matched_count": result.matched_count,
        "modified_count": result.modified_count,
        "deleted_count": result.deleted_count,
        "upserted_count": result.upserted_count,
        "upserted_ids": {str(k): v for k, v in result.upserted_ids.items()},
    }
    return OperationResult(
        operation="bulk-write",
        summary=(
            f"Bulk write: {result.inserted_count} inserted, "
            f"{result.modified_count} modified, {result.deleted_count} deleted, "
            f"{result.upserted_count} upserted"
        ),
        data=data,
    )
