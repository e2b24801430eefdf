"""Parameter schemas for every registered operation.

Document payloads (filters, updates, pipeline stages, options) are passed
through to MongoDB as-is once their Extended JSON markers (`{"$oid": ...}`,
`{"$date": ...}`) are decoded; a malformed marker fails validation.
"""

from typing import Annotated, Any, Literal

from bson.errors import BSONError
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)

from docstore_server.core.serialization import decode_payload
from docstore_server.models.config import validate_mongodb_url


def decode_extended_json(value: Any) -> Any:
    try:
        return decode_payload(value)
    except (BSONError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid Extended JSON: {e}") from e


Document = Annotated[dict[str, Any], AfterValidator(decode_extended_json)]
SortSpec = dict[str, Literal[1, -1]]
IndexKeys = dict[str, Literal[1, -1, "text", "2d", "2dsphere", "hashed"]]


class OperationParams(BaseModel):
    """Fields shared by every operation."""

    model_config = ConfigDict(extra="forbid")

    timeout: float | None = Field(
        default=None, gt=0, description="Deadline for this call in seconds"
    )


class StoreParams(OperationParams):
    """Operations that reach the store and may open the connection lazily."""

    url: str | None = Field(
        default=None,
        description="MongoDB connection string, used only if a connection has to be opened",
    )

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str | None) -> str | None:
        return validate_mongodb_url(v) if v is not None else v

    def target(self) -> str | None:
        return None


class DatabaseParams(StoreParams):
    db: str = Field(min_length=1, description="Database name")

    def target(self) -> str | None:
        return self.db


class CollectionParams(DatabaseParams):
    collection: str = Field(min_length=1, description="Collection name")

    def target(self) -> str | None:
        return f"{self.db}.{self.collection}"


# Connection


class ConnectParams(OperationParams):
    url: str = Field(description="MongoDB connection string")

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return validate_mongodb_url(v)


class CloseParams(OperationParams):
    pass


class PingParams(StoreParams):
    pass


class ListDatabasesParams(StoreParams):
    pass


# Database and collection administration


class CheckDatabaseParams(DatabaseParams):
    pass


class CreateDatabaseParams(DatabaseParams):
    pass


class DropDatabaseParams(DatabaseParams):
    pass


class CreateCollectionParams(CollectionParams):
    options: Document | None = Field(
        default=None, description="createCollection options (capped, validator, ...)"
    )


class DropCollectionParams(CollectionParams):
    pass


# Documents


class InsertOneParams(CollectionParams):
    document: Document = Field(description="Document to insert")


class InsertManyParams(CollectionParams):
    documents: list[Document] = Field(min_length=1, description="Documents to insert")
    ordered: bool = True


class UpdateParams(CollectionParams):
    filter: Document = Field(description="Selects the documents to update")
    update: Document | list[Document] = Field(
        description="Update operators or an update pipeline"
    )
    upsert: bool = False


class DeleteParams(CollectionParams):
    query: Document = Field(description="Selects the documents to delete")


class FindOneParams(CollectionParams):
    query: Document = Field(default_factory=dict, description="Query filter")
    projection: Document | None = None


class FindManyParams(FindOneParams):
    sort: SortSpec | None = Field(default=None, description="Field -> 1 or -1")
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=0, ge=0, description="0 means no limit")
    max_time_ms: int | None = Field(default=None, gt=0)


class CountParams(CollectionParams):
    query: Document = Field(default_factory=dict, description="Query filter")


class DistinctParams(CollectionParams):
    field: str = Field(min_length=1, description="Field to collect distinct values of")
    query: Document | None = None


class FindOneAndUpdateParams(CollectionParams):
    filter: Document
    update: Document | list[Document]
    projection: Document | None = None
    sort: SortSpec | None = None
    upsert: bool = False
    return_document: Literal["before", "after"] = "before"


class FindOneAndDeleteParams(CollectionParams):
    filter: Document
    projection: Document | None = None
    sort: SortSpec | None = None


class BulkOperation(BaseModel):
    """One write inside a bulk-write request."""

    model_config = ConfigDict(extra="forbid")

    op: Literal[
        "insert_one",
        "update_one",
        "update_many",
        "replace_one",
        "delete_one",
        "delete_many",
    ]
    document: Document | None = None
    filter: Document | None = None
    update: Document | list[Document] | None = None
    replacement: Document | None = None
    upsert: bool = False

    @model_validator(mode="after")
    def check_required_fields(self) -> "BulkOperation":
        required = {
            "insert_one": ("document",),
            "update_one": ("filter", "update"),
            "update_many": ("filter", "update"),
            "replace_one": ("filter", "replacement"),
            "delete_one": ("filter",),
            "delete_many": ("filter",),
        }[self.op]
        missing = [name for name in required if getattr(self, name) is None]
        if missing:
            raise ValueError(f"{self.op} requires {', '.join(missing)}")
        return self


class BulkWriteParams(CollectionParams):
    operations: list[BulkOperation] = Field(min_length=1)
    ordered: bool = True


# Aggregation


class AggregateParams(CollectionParams):
    pipeline: list[Document] = Field(description="Aggregation pipeline stages")
    allow_disk_use: bool | None = None


class StageParams(CollectionParams):
    """Single-stage conveniences, optionally preceded by a $match."""

    match: Document | None = Field(
        default=None, description="Optional $match applied before the stage"
    )


class GroupParams(StageParams):
    group: Document = Field(description="$group specification, must contain _id")

    @field_validator("group")
    @classmethod
    def check_group_id(cls, v: Document) -> Document:
        if "_id" not in v:
            raise ValueError("$group specification must contain an _id field")
        return v


class ProjectParams(StageParams):
    projection: Document = Field(description="$project specification")

    @field_validator("projection")
    @classmethod
    def check_projection(cls, v: Document) -> Document:
        if not v:
            raise ValueError("$project specification must not be empty")
        return v


class SortStageParams(StageParams):
    sort: SortSpec = Field(min_length=1, description="Field -> 1 or -1")
    limit: int | None = Field(default=None, gt=0)


class LimitParams(StageParams):
    limit: int = Field(gt=0)


class SkipParams(StageParams):
    skip: int = Field(ge=0)


class LookupParams(StageParams):
    from_collection: str = Field(min_length=1, description="Collection to join")
    local_field: str = Field(min_length=1)
    foreign_field: str = Field(min_length=1)
    as_field: str = Field(min_length=1, description="Output array field")


# Indexes


class CreateIndexParams(CollectionParams):
    keys: IndexKeys = Field(min_length=1, description="Field -> index direction/type")
    name: str | None = None
    unique: bool = False
    sparse: bool = False
    expire_after_seconds: int | None = Field(default=None, ge=0)


class ListIndexesParams(CollectionParams):
    pass


class DropIndexParams(CollectionParams):
    index_name: str = Field(min_length=1)


# Users


class RoleRef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: str = Field(min_length=1)
    db: str = Field(min_length=1)


Role = str | RoleRef


def role_documents(roles: list[Role], default_db: str) -> list[dict[str, str]]:
    """Expand bare role names into ``{role, db}`` documents."""
    documents = []
    for role in roles:
        if isinstance(role, str):
            documents.append({"role": role, "db": default_db})
        else:
            documents.append(role.model_dump())
    return documents


class CreateUserParams(DatabaseParams):
    username: str = Field(min_length=1)
    password: SecretStr
    roles: list[Role] = Field(default_factory=list)


class UpdateUserParams(DatabaseParams):
    username: str = Field(min_length=1)
    password: SecretStr | None = None
    roles: list[Role] | None = None
    custom_data: Document | None = None

    @model_validator(mode="after")
    def check_has_changes(self) -> "UpdateUserParams":
        if self.password is None and self.roles is None and self.custom_data is None:
            raise ValueError("Provide at least one of password, roles or custom_data")
        return self


class RemoveUserParams(DatabaseParams):
    username: str = Field(min_length=1)


class GrantRolesParams(DatabaseParams):
    username: str = Field(min_length=1)
    roles: list[Role] = Field(min_length=1)
