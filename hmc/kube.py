"""An in-memory object store with the semantics the controllers rely on."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

DEFAULT_SYSTEM_NAMESPACE = "hmc-system"
SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"


class ApiError(Exception):
    """An error reported by the object store."""


class NotFoundError(ApiError):
    """The requested object does not exist."""

    def __init__(self, resource: str, name: str) -> None:
        super().__init__(f'{resource} "{name}" not found')
        self.resource = resource
        self.name = name


class BadRequestError(ApiError):
    """The request was malformed, e.g. an object of the wrong type was given."""


class AdmissionDenied(Exception):
    """An admission check refused the request; carries any warnings produced."""

    def __init__(self, message: str, warnings: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.warnings = list(warnings)


@dataclass
class ObjectMeta:
    """Identity and bookkeeping data common to all stored objects."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    deletion_timestamp: Optional[datetime] = None


def _kind_name(kind: Any) -> str:
    if isinstance(kind, str):
        return kind
    return getattr(kind, "kind", None) or kind.__name__


def _object_kind(obj: Any) -> str:
    return getattr(obj, "kind", None) or type(obj).__name__


def _resource_name(kind: Any) -> str:
    if isinstance(kind, str):
        return kind.lower() + "s"
    plural = getattr(kind, "plural", None) or _kind_name(kind).lower() + "s"
    group = getattr(kind, "group", "")
    return f"{plural}.{group}" if group else plural


def _labels_match(selector: Any, labels: Mapping[str, str]) -> bool:
    matches = getattr(selector, "matches", None)
    if callable(matches):
        return bool(matches(labels))
    return all(key in labels and labels[key] == value for key, value in selector.items())


IndexFunc = Callable[[Any], "list[str]"]


class Client:
    """Stores objects by kind, namespace and name.

    Objects must carry a ``metadata`` attribute of type :class:`ObjectMeta`.
    Their kind is the ``kind`` attribute, or the class name. ``indexes`` maps
    ``(kind, field)`` to a function returning the field values of an object,
    which makes the field usable in :meth:`list`.
    """

    def __init__(
        self,
        objects: Iterable[Any] = (),
        indexes: Optional[Mapping[tuple[Any, str], IndexFunc]] = None,
    ) -> None:
        self._objects: dict[tuple[str, str, str], Any] = {}
        self._indexes: dict[tuple[str, str], IndexFunc] = {
            (_kind_name(kind), name): func for (kind, name), func in (indexes or {}).items()
        }
        for obj in objects:
            meta = obj.metadata
            key = (_object_kind(obj), meta.namespace, meta.name)
            if key in self._objects:
                raise ApiError(f'{key[0]} "{meta.namespace}/{meta.name}" already exists')
            self._objects[key] = copy.deepcopy(obj)

    def get(self, kind: Any, name: str, namespace: str = "") -> Any:
        """Return a copy of the object, or raise :class:`NotFoundError`."""
        obj = self._objects.get((_kind_name(kind), namespace, name))
        if obj is None:
            raise NotFoundError(_resource_name(kind), name)
        return copy.deepcopy(obj)

    def list(
        self,
        kind: Any,
        namespace: Optional[str] = None,
        labels: Any = None,
        fields: Optional[Mapping[str, str]] = None,
        limit: Optional[int] = None,
    ) -> list[Any]:
        """Return copies of matching objects ordered by namespace and name.

        ``labels`` is a mapping of required label values or any object with a
        ``matches(labels)`` method. An empty ``namespace`` means all namespaces.
        """
        kname = _kind_name(kind)
        fields = dict(fields or {})
        for fname in fields:
            if fname not in ("metadata.name", "metadata.namespace") and (
                (kname, fname) not in self._indexes
            ):
                raise ApiError(
                    f"List on {kname} specifies selector on field {fname}, "
                    "but no index with that name has been registered"
                )

        result: list[Any] = []
        for (obj_kind, obj_ns, _), obj in sorted(self._objects.items(), key=lambda kv: kv[0]):
            if obj_kind != kname:
                continue
            if namespace and obj_ns != namespace:
                continue
            meta = obj.metadata
            if labels is not None and not _labels_match(labels, meta.labels):
                continue
            if any(value not in self._field_values(kname, fname, obj) for fname, value in fields.items()):
                continue
            result.append(copy.deepcopy(obj))
            if limit and len(result) >= limit:
                break
        return result

    def delete(self, kind: Any, meta: ObjectMeta) -> None:
        """Delete the object; objects with finalizers are only marked for deletion."""
        key = (_kind_name(kind), meta.namespace, meta.name)
        obj = self._objects.get(key)
        if obj is None:
            raise NotFoundError(_resource_name(kind), meta.name)
        if obj.metadata.finalizers:
            if obj.metadata.deletion_timestamp is None:
                obj.metadata.deletion_timestamp = datetime.now(timezone.utc)
        else:
            del self._objects[key]

    def _field_values(self, kind: str, fname: str, obj: Any) -> list[str]:
        if fname == "metadata.name":
            return [obj.metadata.name]
        if fname == "metadata.namespace":
            return [obj.metadata.namespace]
        return list(self._indexes[(kind, fname)](obj))


def ensure_delete_all_of(
    client: Client,
    kind: Any,
    namespace: Optional[str] = None,
    labels: Any = None,
) -> None:
    """Request deletion of every matching object.

    Raises :class:`ApiError` while any matching object still exists, listing
    each one that is awaiting removal and any deletion failures.
    """
    kname = _kind_name(kind)
    messages: list[str] = []
    for item in client.list(kind, namespace=namespace, labels=labels):
        meta = item.metadata
        if meta.deletion_timestamp is None:
            try:
                client.delete(kind, meta)
            except NotFoundError:
                pass
            except ApiError as exc:
                messages.append(str(exc))
                continue
        messages.append(f"waiting for {kname} {meta.namespace}/{meta.name} removal")
    if messages:
        raise ApiError("\n".join(messages))


def current_namespace() -> str:
    """Return the namespace this process runs in."""
    ns = os.environ.get("POD_NAMESPACE")
    if ns is not None:
        return ns
    try:
        with open(SERVICE_ACCOUNT_NAMESPACE_FILE, encoding="utf-8") as fh:
            content = fh.read()
    except OSError:
        content = ""
    if content:
        return content
    return DEFAULT_SYSTEM_NAMESPACE