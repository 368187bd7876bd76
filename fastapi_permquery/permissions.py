import re
from enum import StrEnum
from typing import Any

from fastapi_permquery.errors import InvalidPermission, PermissionErrorCode

WILDCARD = "*"
SEPARATOR = "."

# Base58: no 0, O, I or l.
ID_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
ID_MIN_LENGTH = 8
ID_MAX_LENGTH = 32


class Resource(StrEnum):
    API = "api"
    RATELIMIT = "ratelimit"


class ApiAction(StrEnum):
    READ_API = "read_api"
    CREATE_API = "create_api"
    DELETE_API = "delete_api"
    UPDATE_API = "update_api"
    CREATE_KEY = "create_key"
    UPDATE_KEY = "update_key"
    DELETE_KEY = "delete_key"
    READ_KEY = "read_key"


class RatelimitAction(StrEnum):
    LIMIT = "limit"
    CREATE_NAMESPACE = "create_namespace"
    READ_NAMESPACE = "read_namespace"
    UPDATE_NAMESPACE = "update_namespace"
    DELETE_NAMESPACE = "delete_namespace"


RESOURCE_ID_PREFIXES: dict[Resource, str] = {
    Resource.API: "api",
    Resource.RATELIMIT: "rl",
}

RESOURCE_ACTIONS: dict[Resource, type[StrEnum]] = {
    Resource.API: ApiAction,
    Resource.RATELIMIT: RatelimitAction,
}

_RESOURCE_NAMES = frozenset(resource.value for resource in Resource)
_RESOURCE_ACTION_NAMES = {
    resource: frozenset(action.value for action in actions) for resource, actions in RESOURCE_ACTIONS.items()
}

_id_patterns: dict[str, re.Pattern[str]] = {}


def _id_pattern(prefix: str) -> re.Pattern[str]:
    pattern = _id_patterns.get(prefix)
    if pattern is None:
        pattern = re.compile(
            rf"{re.escape(prefix)}_[{ID_ALPHABET}]{{{ID_MIN_LENGTH},{ID_MAX_LENGTH}}}"
        )
        _id_patterns[prefix] = pattern
    return pattern


def validate_resource_id(prefix: str, value: Any) -> bool:
    """Check a resource id against ``{prefix}_<base58>`` or the ``*`` wildcard.

    Matching is exact: no case folding, no trimming.
    """
    if not isinstance(value, str):
        return False
    if value == WILDCARD:
        return True
    return _id_pattern(prefix).fullmatch(value) is not None


def check_permission(value: Any) -> PermissionErrorCode | None:
    """Return why ``value`` is not a valid permission identifier, or None if it is."""
    if not isinstance(value, str):
        return PermissionErrorCode.NOT_A_STRING
    if value == WILDCARD:
        return None

    segments = value.split(SEPARATOR)
    if len(segments) != 3:
        return PermissionErrorCode.WRONG_SEGMENT_COUNT

    resource_name, resource_id, action = segments
    if resource_name not in _RESOURCE_NAMES:
        return PermissionErrorCode.UNKNOWN_RESOURCE
    resource = Resource(resource_name)

    if not validate_resource_id(RESOURCE_ID_PREFIXES[resource], resource_id):
        return PermissionErrorCode.BAD_ID_FORMAT
    if action not in _RESOURCE_ACTION_NAMES[resource]:
        return PermissionErrorCode.UNKNOWN_ACTION

    return None


def validate_permission(value: Any) -> bool:
    """Check whether ``value`` is ``*`` or a valid ``resource.resourceId.action`` triple."""
    return check_permission(value) is None


class _ResourceId(str):
    """A resource id that can only be built from a validated string."""

    prefix: str

    __slots__ = ()

    def __new__(cls, value: str) -> "_ResourceId":
        if not validate_resource_id(cls.prefix, value):
            raise InvalidPermission(value, PermissionErrorCode.BAD_ID_FORMAT)
        return super().__new__(cls, value)

    @classmethod
    def parse(cls, value: str) -> "_ResourceId":
        return cls(value)

    @property
    def is_wildcard(self) -> bool:
        return self == WILDCARD

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self)!r})"


class ApiId(_ResourceId):
    prefix = RESOURCE_ID_PREFIXES[Resource.API]


class RatelimitNamespaceId(_ResourceId):
    prefix = RESOURCE_ID_PREFIXES[Resource.RATELIMIT]


RESOURCE_ID_TYPES: dict[Resource, type[_ResourceId]] = {
    Resource.API: ApiId,
    Resource.RATELIMIT: RatelimitNamespaceId,
}


class Permission:
    """A parsed permission identifier.

    The legacy wildcard ``*`` parses to a permission whose ``resource``,
    ``resource_id`` and ``action`` are all None.
    """

    __slots__ = ("resource", "resource_id", "action")

    def __init__(
        self,
        resource: Resource | None,
        resource_id: _ResourceId | None,
        action: StrEnum | None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.action = action

    @property
    def is_wildcard(self) -> bool:
        return self.resource is None

    def __str__(self) -> str:
        if self.is_wildcard:
            return WILDCARD
        return SEPARATOR.join((str(self.resource), str(self.resource_id), str(self.action)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Permission):
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self)!r})"


def parse_permission(value: Any) -> Permission:
    """Parse a permission identifier into a typed :class:`Permission`.

    Raises:
        InvalidPermission: If any segment fails its grammar.
    """
    code = check_permission(value)
    if code is not None:
        raise InvalidPermission(value, code)
    if value == WILDCARD:
        return Permission(None, None, None)

    resource_name, resource_id, action = value.split(SEPARATOR)
    resource = Resource(resource_name)
    return Permission(
        resource,
        RESOURCE_ID_TYPES[resource](resource_id),
        RESOURCE_ACTIONS[resource](action),
    )


def implies(held: str, required: str) -> bool:
    """Check if a held grant implies (satisfies) a required permission.

    Exact matches always imply. The legacy wildcard '*' implies everything.
    'api.*.read_key' implies 'api.api_xxx.read_key' for any api id.
    Unstructured role names only match themselves.
    """
    if held == required or held == WILDCARD:
        return True

    try:
        held_permission = parse_permission(held)
        required_permission = parse_permission(required)
    except InvalidPermission:
        return False

    if required_permission.is_wildcard:
        return False

    return (
        held_permission.resource == required_permission.resource
        and held_permission.action == required_permission.action
        and held_permission.resource_id is not None
        and held_permission.resource_id.is_wildcard
    )
