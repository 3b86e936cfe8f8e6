import base64
import json
import os
from typing import Optional

from jsonschema import FormatChecker, validate, ValidationError

import initinjector.constants as const
from initinjector.exceptions import PathTraversalError

RES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "res")


def safe_path_func(callback: callable, base_dir: str, path: str, *args, **kwargs):
    if os.path.commonprefix((os.path.realpath(path), base_dir)) != base_dir:
        msg = "Potential path traversal in {path}."
        raise PathTraversalError(message=msg, path=path)
    return callback(path, *args, **kwargs)


def get_admission_review(
    uid: str,
    allowed: bool,
    patch: Optional[bytes] = None,
    msg: Optional[str] = None,
    code: Optional[int] = None,
):
    """
    Get a standardized response object with patching instructions for the
    request and error message.

    Parameters
    ----------
    uid : str
        The uid of the request that was sent to the webhook. Echoed back so
        the API server can correlate the response.
    allowed : bool
        Whether the request is admitted. Only `False` for requests that could
        not be processed.
    patch : bytes (optional)
        A serialized JSON patch document, that will modify the original
        object. It is Base64 encoded and only attached to allowed responses.
    msg : str (optional)
        The error message, shown as the status message of the response.
    code : int (optional)
        HTTP-like status code for the response status.

    Return
    ----------
    AdmissionReview : dict
        Response is an AdmissionReview with following structure:

        {
          "apiVersion": "admission.k8s.io/v1",
          "kind": "AdmissionReview",
          "response": {
            "uid": uid,
            "allowed": allowed,
            "status": {
                "code": 400,
                "message": "Expecting value: line 1 column 1 (char 0)"
            },
            "patchType": "JSONPatch",
            "patch":
                "W3sib3AiOiAiYWRkIiwgInBhdGgiOiAiL3NwZWMvcmVwbGljYXMiLCAidmFsdWUiOiAzfV0="
          }
        }
    """
    review = {
        "apiVersion": const.ADMISSION_API_VERSION,
        "kind": "AdmissionReview",
        "response": {"uid": uid, "allowed": allowed},
    }

    if msg or code:
        status = {}
        if code:
            status["code"] = code
        if msg:
            status["message"] = msg
        review["response"]["status"] = status

    if patch and allowed:
        review["response"]["patchType"] = const.JSON_PATCH
        review["response"]["patch"] = base64.b64encode(patch).decode("utf-8")

    return review


def validate_schema(data: dict, schema_file_name: str, kind: str, exception):
    with open(
        os.path.join(RES_DIR, schema_file_name), "r", encoding="utf-8"
    ) as schema_file:
        schema = json.load(schema_file)

    try:
        validate(instance=data, schema=schema, format_checker=FormatChecker())
    except ValidationError as err:
        msg = "{validation_kind} has an invalid format: {validation_err}"
        location = ".".join(str(part) for part in err.absolute_path)
        if location:
            msg += " at {location}"
        raise exception(
            message=f"{msg}.",
            validation_kind=kind,
            validation_err=err.message,
            location=location,
        ) from err
