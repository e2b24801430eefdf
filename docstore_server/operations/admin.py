"""Connection, database, collection, index and user administration."""

import logging

from docstore_server.core.session import ConnectionSession
from docstore_server.models.params import (
    CheckDatabaseParams,
    CloseParams,
    ConnectParams,
    CreateCollectionParams,
    CreateDatabaseParams,
    CreateIndexParams,
    CreateUserParams,
    DropCollectionParams,
    DropDatabaseParams,
    DropIndexParams,
    GrantRolesParams,
    ListDatabasesParams,
    ListIndexesParams,
    PingParams,
    RemoveUserParams,
    UpdateUserParams,
    role_documents,
)
from docstore_server.models.results import OperationResult
from docstore_server.operations.registry import get_collection, get_database, registry

logger = logging.getLogger(__name__)

# MongoDB only materializes a database once something is written to it.
SENTINEL_COLLECTION = "__docstore_init__"


# Connection


@registry.operation(
    "connect-to-mongo", ConnectParams, requires_connection=False, tags=("connection",)
)
async def connect_to_mongo(
    session: ConnectionSession, params: ConnectParams
) -> OperationResult:
    """Connect (or reconnect) to a MongoDB deployment."""
    await session.connect(params.url)
    return OperationResult(
        operation="connect-to-mongo",
        summary="Connected to MongoDB!",
        data=session.describe(),
    )


@registry.operation(
    "close-connection", CloseParams, requires_connection=False, tags=("connection",)
)
async def close_connection(
    session: ConnectionSession, params: CloseParams
) -> OperationResult:
    """Close the shared MongoDB connection."""
    closed = await session.close()
    return OperationResult(
        operation="close-connection",
        summary="connection closed" if closed else "No open connection to close",
        data={"closed": closed},
    )


@registry.operation("ping", PingParams, tags=("connection",))
async def ping(session: ConnectionSession, params: PingParams) -> OperationResult:
    """Check that the MongoDB deployment answers."""
    reply = await session.handle_for().admin.command("ping")
    return OperationResult(
        operation="ping",
        summary=f"MongoDB is reachable at {session.describe()['address']}",
        data={"reply": reply, "session": session.describe()},
    )


# Databases


@registry.operation("list-databases", ListDatabasesParams, tags=("databases",))
async def list_databases(
    session: ConnectionSession, params: ListDatabasesParams
) -> OperationResult:
    """List the databases on the deployment."""
    names = await session.handle_for().list_database_names()
    return OperationResult(
        operation="list-databases",
        summary=f"Databases: {', '.join(names)}",
        data=names,
    )


@registry.operation("collections-available-in-db", CheckDatabaseParams, tags=("databases",))
async def collections_available_in_db(
    session: ConnectionSession, params: CheckDatabaseParams
) -> OperationResult:
    """List the collections in a database."""
    names = await get_database(session, params).list_collection_names()
    return OperationResult(
        operation="collections-available-in-db",
        summary=f"Collections in {params.db}: {', '.join(names)}",
        data=names,
    )


@registry.operation("create-database", CreateDatabaseParams, tags=("databases",))
async def create_database(
    session: ConnectionSession, params: CreateDatabaseParams
) -> OperationResult:
    """Create a database by creating and dropping a sentinel collection.

    This is the one handler that issues two store requests: create
    ``__docstore_init__``, then drop it.
    """
    database = get_database(session, params)
    await database.create_collection(SENTINEL_COLLECTION)
    await database.drop_collection(SENTINEL_COLLECTION)
    logger.info(f"Created database {params.db} via {SENTINEL_COLLECTION}")
    return OperationResult(
        operation="create-database",
        summary=f'Database "{params.db}" created successfully.',
        data={"db": params.db},
    )


@registry.operation("drop-database", DropDatabaseParams, tags=("databases",))
async def drop_database(
    session: ConnectionSession, params: DropDatabaseParams
) -> OperationResult:
    """Drop a database and everything in it."""
    await session.handle_for().drop_database(params.db)
    logger.info(f"Dropped database {params.db}")
    return OperationResult(
        operation="drop-database",
        summary=f'Database "{params.db}" dropped successfully.',
        data={"db": params.db},
    )


# Collections


@registry.operation("create-collection", CreateCollectionParams, tags=("collections",))
async def create_collection(
    session: ConnectionSession, params: CreateCollectionParams
) -> OperationResult:
    """Create a collection, optionally with createCollection options."""
    options = params.options or {}
    await get_database(session, params).create_collection(params.collection, **options)
    return OperationResult(
        operation="create-collection",
        summary=f'Collection "{params.collection}" created successfully.',
        data={"db": params.db, "collection": params.collection},
    )


@registry.operation("drop-collection", DropCollectionParams, tags=("collections",))
async def drop_collection(
    session: ConnectionSession, params: DropCollectionParams
) -> OperationResult:
    """Drop a collection."""
    await get_database(session, params).drop_collection(params.collection)
    return OperationResult(
        operation="drop-collection",
        summary=f'Collection "{params.collection}" dropped successfully.',
        data={"dropped": True},
    )


# Indexes


@registry.operation("create-index", CreateIndexParams, tags=("indexes",))
async def create_index(
    session: ConnectionSession, params: CreateIndexParams
) -> OperationResult:
    """Create an index on a collection."""
    options = {}
    if params.name:
        options["name"] = params.name
    if params.unique:
        options["unique"] = True
    if params.sparse:
        options["sparse"] = True
    if params.expire_after_seconds is not None:
        options["expireAfterSeconds"] = params.expire_after_seconds

    index_name = await get_collection(session, params).create_index(
        list(params.keys.items()), **options
    )
    return OperationResult(
        operation="create-index",
        summary=f"Index '{index_name}' created on {params.target()}",
        data={"index_name": index_name},
    )


@registry.operation("list-indexes", ListIndexesParams, tags=("indexes",))
async def list_indexes(
    session: ConnectionSession, params: ListIndexesParams
) -> OperationResult:
    """List the indexes of a collection."""
    cursor = get_collection(session, params).list_indexes()
    indexes = [dict(index) for index in await cursor.to_list(length=None)]
    names = ", ".join(index.get("name", "?") for index in indexes)
    return OperationResult(
        operation="list-indexes",
        summary=f"Indexes on {params.target()}: {names}",
        data=indexes,
    )


@registry.operation("drop-index", DropIndexParams, tags=("indexes",))
async def drop_index(session: ConnectionSession, params: DropIndexParams) -> OperationResult:
    """Drop an index by name."""
    await get_collection(session, params).drop_index(params.index_name)
    return OperationResult(
        operation="drop-index",
        summary=f"Index '{params.index_name}' dropped from {params.target()}",
        data={"index_name": params.index_name},
    )


# Users


@registry.operation("create-user", CreateUserParams, tags=("users",))
async def create_user(
    session: ConnectionSession, params: CreateUserParams
) -> OperationResult:
    """Create a database user."""
    roles = role_documents(params.roles, params.db)
    await get_database(session, params).command(
        "createUser",
        params.username,
        pwd=params.password.get_secret_value(),
        roles=roles,
    )
    logger.info(f"Created user {params.username} on {params.db}")
    return OperationResult(
        operation="create-user",
        summary=f"User '{params.username}' created on {params.db}",
        data={"username": params.username, "roles": roles},
    )


@registry.operation("update-user", UpdateUserParams, tags=("users",))
async def update_user(
    session: ConnectionSession, params: UpdateUserParams
) -> OperationResult:
    """Change a user's password, roles or custom data."""
    changes = {}
    if params.password is not None:
        changes["pwd"] = params.password.get_secret_value()
    if params.roles is not None:
        changes["roles"] = role_documents(params.roles, params.db)
    if params.custom_data is not None:
        changes["customData"] = params.custom_data

    await get_database(session, params).command("updateUser", params.username, **changes)
    updated = sorted(key for key in changes if key != "pwd")
    if "pwd" in changes:
        updated.insert(0, "password")
    return OperationResult(
        operation="update-user",
        summary=f"User '{params.username}' updated ({', '.join(updated)})",
        data={"username": params.username, "updated": updated},
    )


@registry.operation("remove-user", RemoveUserParams, tags=("users",))
async def remove_user(
    session: ConnectionSession, params: RemoveUserParams
) -> OperationResult:
    """Remove a database user."""
    await get_database(session, params).command("dropUser", params.username)
    logger.info(f"Removed user {params.username} from {params.db}")
    return OperationResult(
        operation="remove-user",
        summary=f"User '{params.username}' removed from {params.db}",
        data={"username": params.username},
    )


@registry.operation("grant-roles", GrantRolesParams, tags=("users",))
async def grant_roles(
    session: ConnectionSession, params: GrantRolesParams
) -> OperationResult:
    """Grant additional roles to a user."""
    roles = role_documents(params.roles, params.db)
    await get_database(session, params).command(
        "grantRolesToUser", params.username, roles=roles
    )
    granted = ", ".join(f"{r['role']}@{r['db']}" for r in roles)
    return OperationResult(
        operation="grant-roles",
        summary=f"Granted {granted} to '{params.username}'",
        data={"username": params.username, "roles": roles},
    )
