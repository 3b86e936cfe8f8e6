from initinjector.exceptions import InvalidWorkloadFormatError, UnknownAPIVersionError
from initinjector.util import validate_schema

SUPPORTED_API_VERSIONS = {
    "Pod": ["v1"],
    "Deployment": ["apps/v1"],
    "ReplicationController": ["v1"],
    "ReplicaSet": ["apps/v1"],
    "DaemonSet": ["apps/v1"],
    "StatefulSet": ["apps/v1"],
    "Job": ["batch/v1"],
    "CronJob": ["batch/v1", "batch/v1beta1"],
}


class WorkloadObject:
    """
    Read-only view on the object embedded in an admission request.
    """

    pod_spec_path = "/spec/template/spec"
    __SCHEMA = "workload_schema.json"

    def __new__(
        cls, request_object: dict, namespace: str
    ):  # pylint: disable=unused-argument
        kind = request_object.get("kind") if isinstance(request_object, dict) else None
        if kind == "Pod":
            return super(WorkloadObject, cls).__new__(Pod)
        elif kind == "CronJob":
            return super(WorkloadObject, cls).__new__(CronJob)
        return super(WorkloadObject, cls).__new__(WorkloadObject)

    def __init__(self, request_object: dict, namespace: str):
        validate_schema(
            request_object,
            self.__SCHEMA,
            "WorkloadObject",
            InvalidWorkloadFormatError,
        )

        self.kind = request_object["kind"]
        self.api_version = request_object["apiVersion"]
        self._metadata = request_object["metadata"]
        # objects of CREATE requests usually come without a namespace
        self.namespace = self._metadata.get("namespace") or namespace
        self.name = self._metadata.get("name") or self._metadata.get("generateName")
        self._spec = request_object.get("spec") or {}

        if self.api_version not in SUPPORTED_API_VERSIONS.get(self.kind, []):
            msg = (
                "{wl_obj_version} is not in the supported API version list "
                "for {wl_obj_kind} {wl_obj_name}."
            )
            raise UnknownAPIVersionError(
                message=msg,
                wl_obj_version=self.api_version,
                wl_obj_kind=self.kind,
                wl_obj_name=self.name,
            )

        for field in ("initContainers", "volumes"):
            if not isinstance(self.spec.get(field) or [], list):
                msg = "{field} of {wl_obj_kind} {wl_obj_name} is not a list."
                raise InvalidWorkloadFormatError(
                    message=msg,
                    field=field,
                    wl_obj_kind=self.kind,
                    wl_obj_name=self.name,
                )

    @property
    def annotations(self) -> dict:
        return self._metadata.get("annotations") or {}

    @property
    def spec(self) -> dict:
        return ((self._spec.get("template") or {}).get("spec")) or {}

    @property
    def init_containers(self) -> list:
        return self.spec.get("initContainers") or []

    @property
    def volumes(self) -> list:
        return self.spec.get("volumes") or []

    @property
    def init_containers_path(self) -> str:
        return f"{self.pod_spec_path}/initContainers"

    @property
    def volumes_path(self) -> str:
        return f"{self.pod_spec_path}/volumes"


class Pod(WorkloadObject):
    pod_spec_path = "/spec"

    @property
    def spec(self):
        return self._spec


class CronJob(WorkloadObject):
    pod_spec_path = "/spec/jobTemplate/spec/template/spec"

    @property
    def spec(self):
        job_template = self._spec.get("jobTemplate") or {}
        template = (job_template.get("spec") or {}).get("template") or {}
        return template.get("spec") or {}
