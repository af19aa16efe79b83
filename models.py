"""
Shapes of the Make resources returned by the API client.

These describe the JSON payloads relayed back to the caller; nothing is
validated or stored locally.
"""
from typing import Any, Literal, NotRequired, TypedDict

SortDir = Literal["asc", "desc"]


class Scenario(TypedDict):
    id: int
    name: str
    teamId: int
    folderId: NotRequired[int]
    isActive: bool
    isPaused: bool
    isInvalid: bool
    isLocked: bool
    scheduling: str
    description: NotRequired[str]
    created: str
    lastEdit: str
    usedPackages: NotRequired[list[str]]


class BlueprintRoute(TypedDict):
    flow: list["BlueprintModule"]


class BlueprintModule(TypedDict):
    id: int
    module: str
    version: int
    mapper: NotRequired[dict[str, Any]]
    metadata: NotRequired[dict[str, Any]]
    routes: NotRequired[list[BlueprintRoute]]


class Blueprint(TypedDict):
    name: str
    flow: list[BlueprintModule]
    metadata: NotRequired[dict[str, Any]]


class Connection(TypedDict):
    id: int
    name: str
    accountName: str
    accountLabel: str
    packageName: str
    expire: NotRequired[str]
    metadata: NotRequired[dict[str, Any]]
    teamId: int
    upgradeable: bool
    scoped: bool
    scopes: NotRequired[list[str]]


class Hook(TypedDict):
    id: int
    name: str
    teamId: int
    url: str
    type: str
    packageName: str
    theme: NotRequired[str]
    enabled: bool


class DataStore(TypedDict):
    id: int
    name: str
    teamId: int
    records: int
    size: int
    maxSize: int
    dataStructureId: NotRequired[int]


class Team(TypedDict):
    id: int
    name: str
    organizationId: int


class Organization(TypedDict):
    id: int
    name: str
    zone: str
    countryId: int
    timezoneId: int


class User(TypedDict):
    id: int
    name: str
    email: str


class RunResult(TypedDict):
    executionId: str
    status: NotRequired[str]
    outputs: NotRequired[Any]


# Data store records are free-form mappings keyed by the store's record key
DataStoreRecord = dict[str, Any]

