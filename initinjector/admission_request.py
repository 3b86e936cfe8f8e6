from initinjector.exceptions import InvalidAdmissionReviewFormatError
from initinjector.util import validate_schema
from initinjector.workload_object import WorkloadObject


def get_uid(ad_request) -> str:
    """
    Return the uid of a decoded admission review, or an empty string if it
    carries none. Works on reviews that fail validation, so that error
    responses still echo the uid of the request they answer.
    """
    request = ad_request.get("request") if isinstance(ad_request, dict) else None
    uid = request.get("uid") if isinstance(request, dict) else None
    return uid if isinstance(uid, str) else ""


class AdmissionRequest:
    __SCHEMA = "ad_request_schema.json"

    def __init__(self, ad_request: dict):
        validate_schema(
            ad_request,
            self.__SCHEMA,
            "AdmissionRequest",
            InvalidAdmissionReviewFormatError,
        )

        request = ad_request["request"]
        self.uid = get_uid(ad_request)
        self.kind = request.get("kind", {}).get("kind", "")
        self.namespace = request.get("namespace", "")
        self.name = request.get("name", "")
        self.operation = request.get("operation", "")
        self.user = request.get("userInfo", {}).get("username", "")
        # type checks of the object are left to the workload stage
        self.object = request.get("object")
        self._wl_object = None

    @property
    def wl_object(self) -> WorkloadObject:
        """
        The workload embedded in the request. Parsed on first access, so that
        decoding errors of the object surface separately from those of the
        envelope.
        """
        if self._wl_object is None:
            self._wl_object = WorkloadObject(self.object, self.namespace)
        return self._wl_object

    @property
    def context(self):
        return {
            "uid": self.uid,
            "user": self.user,
            "operation": self.operation,
            "kind": self.kind,
            "wl_obj_name": self.name
            or (self._wl_object.name if self._wl_object else ""),
            "namespace": self.namespace,
        }
