import json
from typing import Mapping, Optional, Union

import initinjector.constants as const
from initinjector.exceptions import PatchCreationError
from initinjector.workload_object import WorkloadObject

ADD = "add"
REPLACE = "replace"
ANNOTATIONS_PATH = "/metadata/annotations"

# a single container or volume, a list of them, or an annotation value
PatchValue = Union[dict, list, str]


class PatchOperation:
    """
    A single operation of a JSON patch (RFC 6902).
    """

    def __init__(self, op: str, path: str, value: Optional[PatchValue] = None):
        self.op = op
        self.path = path
        self.value = value

    def to_dict(self) -> dict:
        operation = {"op": self.op, "path": self.path}
        if self.value is not None:
            operation["value"] = self.value
        return operation

    def __eq__(self, other):
        return isinstance(other, PatchOperation) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"PatchOperation({self.op!r}, {self.path!r}, {self.value!r})"


def escape_json_pointer(token: str) -> str:
    """
    Escape a single reference token of a JSON pointer (RFC 6901).
    """
    return token.replace("~", "~0").replace("/", "~1")


def add_to_list(existing: list, additions: list, path: str) -> list:
    """
    Create `add` operations that append all `additions` to the list at `path`.

    Appending with `path/-` only works for lists that already exist, so if
    `existing` is empty, the first addition creates the list instead.
    """
    operations = []
    create_list = not existing
    for addition in additions:
        if create_list:
            create_list = False
            operations.append(PatchOperation(ADD, path, [addition]))
        else:
            operations.append(PatchOperation(ADD, f"{path}/-", addition))
    return operations


def update_annotations(
    current: Optional[Mapping[str, str]], updates: Mapping[str, str]
) -> list:
    """
    Create `replace` operations for all `updates`, whose key is currently set
    to "true" on the workload. Annotations with any other value, or none at
    all, are left alone.
    """
    current = current or {}
    return [
        PatchOperation(REPLACE, f"{ANNOTATIONS_PATH}/{escape_json_pointer(key)}", value)
        for key, value in updates.items()
        if current.get(key) == const.MARKER_VALUE
    ]


def create_patch(
    workload: WorkloadObject,
    containers: list,
    volumes: list,
    annotations: Mapping[str, str],
) -> bytes:
    """
    Build the serialized JSON patch that injects `containers` and `volumes`
    into the pod spec of `workload` and updates its `annotations`.

    The init container operations come first, followed by the volume and
    finally the annotation operations.

    Raise `PatchCreationError` if the patch can't be serialized.
    """
    operations = (
        add_to_list(workload.init_containers, containers, workload.init_containers_path)
        + add_to_list(workload.volumes, volumes, workload.volumes_path)
        + update_annotations(workload.annotations, annotations)
    )

    try:
        return json.dumps(
            [operation.to_dict() for operation in operations], allow_nan=False
        ).encode("utf-8")
    except (TypeError, ValueError) as err:
        msg = "Couldn't serialize JSON patch for {wl_obj_kind} {wl_obj_name}: {err}"
        raise PatchCreationError(
            message=msg,
            wl_obj_kind=workload.kind,
            wl_obj_name=workload.name,
            err=str(err),
        ) from err
