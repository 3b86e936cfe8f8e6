import base64
import json

import pytest

import initinjector.constants as const
import initinjector.flask_application as fa

INIT_A = {
    "name": "init-a",
    "image": "registry.io/tools/init-a:v1",
    "command": ["sh", "-c", "echo A"],
    "resources": {"limits": {"cpu": "100m", "memory": "64Mi"}},
    "imagePullPolicy": "IfNotPresent",
    "terminationMessagePath": "/dev/termination-log",
    "terminationMessagePolicy": "File",
}
INIT_B = {
    "name": "init-b",
    "image": "busybox",
    "command": ["sh", "-c", "echo B"],
    "imagePullPolicy": "Always",
    "terminationMessagePath": "/dev/termination-log",
    "terminationMessagePolicy": "File",
}


def decode_patch(admission_response):
    return json.loads(base64.b64decode(admission_response["patch"]))


@pytest.mark.parametrize("index", [2, 3])
def test_mutate_skipped(client, adm_req_samples, index):
    response = client.post("/mutate", json=adm_req_samples[index])
    admission_response = response.get_json()["response"]

    assert response.status_code == 200
    assert response.is_json
    assert response.get_json()["apiVersion"] == "admission.k8s.io/v1"
    assert response.get_json()["kind"] == "AdmissionReview"
    assert admission_response == {
        "uid": adm_req_samples[index]["request"]["uid"],
        "allowed": True,
    }


def test_mutate_no_init_containers(client, adm_req_samples):
    response = client.post("/mutate", json=adm_req_samples[0])
    admission_response = response.get_json()["response"]

    assert response.status_code == 200
    assert admission_response["uid"] == "3a3a7b38-5512-4a85-94bb-3562269e0a6a"
    assert admission_response["allowed"] is True
    assert admission_response["patchType"] == "JSONPatch"
    assert "status" not in admission_response
    assert decode_patch(admission_response) == [
        {"op": "add", "path": "/spec/template/spec/initContainers", "value": [INIT_A]},
        {"op": "add", "path": "/spec/template/spec/initContainers/-", "value": INIT_B},
    ]


def test_mutate_existing_init_containers(client, adm_req_samples):
    response = client.post("/mutate", json=adm_req_samples[1])
    admission_response = response.get_json()["response"]

    assert admission_response["allowed"] is True
    assert decode_patch(admission_response) == [
        {"op": "add", "path": "/spec/template/spec/initContainers/-", "value": INIT_A},
        {"op": "add", "path": "/spec/template/spec/initContainers/-", "value": INIT_B},
    ]


def test_mutate_marker_annotation(client, adm_req_samples):
    # the inject annotation can't be "yes" and "true" at once, so the marker
    # only gets replaced if the update set holds a different key, see
    # test_patch.test_create_patch_no_init_containers_with_marker_annotation
    review = adm_req_samples[0]
    review["request"]["object"]["metadata"]["annotations"][
        const.INJECT_ANNOTATION_KEY
    ] = "true"
    response = client.post("/mutate", json=review)
    admission_response = response.get_json()["response"]

    assert admission_response == {"uid": review["request"]["uid"], "allowed": True}


@pytest.mark.parametrize(
    "index, path",
    [
        (4, "/spec/initContainers"),
        (5, "/spec/jobTemplate/spec/template/spec/initContainers"),
    ],
)
def test_mutate_pod_spec_paths(client, adm_req_samples, index, path):
    response = client.post("/mutate", json=adm_req_samples[index])
    patch = decode_patch(response.get_json()["response"])
    assert [(o["op"], o["path"]) for o in patch] == [("add", path), ("add", f"{path}/-")]


def test_mutate_volumes(sample_config_volumes, adm_req_samples):
    client = fa.create_app(sample_config_volumes).test_client()
    response = client.post("/mutate", json=adm_req_samples[1])
    patch = decode_patch(response.get_json()["response"])

    assert [(o["op"], o["path"]) for o in patch] == [
        ("add", "/spec/template/spec/initContainers/-"),
        ("add", "/spec/template/spec/volumes/-"),
    ]
    assert patch[1]["value"] == {"name": "shared-data", "emptyDir": {}}


def test_mutate_does_not_alter_config(client, sample_config, adm_req_samples):
    before = sample_config.containers
    client.post("/mutate", json=adm_req_samples[0])
    client.post("/mutate", json=adm_req_samples[1])
    assert sample_config.containers == before
    assert "imagePullPolicy" not in sample_config.containers[0]


@pytest.mark.parametrize(
    "data, msg",
    [
        (b"{not json", r"Can't decode request body"),
        (b"\xff\xfe", r"Can't decode request body"),
        (b"[]", r"AdmissionRequest has an invalid format"),
        (b'{"request": {}}', r"AdmissionRequest has an invalid format"),
    ],
)
def test_mutate_decode_error(client, data, msg):
    response = client.post("/mutate", data=data, content_type="application/json")
    admission_response = response.get_json()["response"]

    assert response.status_code == 200
    assert admission_response["uid"] == ""
    assert admission_response["allowed"] is False
    assert admission_response["status"]["code"] == 400
    assert msg in admission_response["status"]["message"]
    assert "patch" not in admission_response


@pytest.mark.parametrize(
    "index, msg",
    [
        (6, r"'uid' is a required property"),
        (7, r"apps/v1beta1 is not in the supported API version list"),
        (8, r"WorkloadObject has an invalid format"),
    ],
)
def test_mutate_invalid_request(client, adm_req_samples, index, msg):
    response = client.post("/mutate", json=adm_req_samples[index])
    admission_response = response.get_json()["response"]

    assert response.status_code == 200
    assert admission_response["allowed"] is False
    assert admission_response["uid"] == adm_req_samples[index]["request"].get(
        "uid", ""
    )
    assert msg in admission_response["status"]["message"]
    assert "patch" not in admission_response


@pytest.mark.parametrize(
    "index, keys, value, msg",
    [
        (0, ["object"], "not-an-object", r"'not-an-object' is not of type 'object'"),
        (0, ["object", "spec", "template"], "garbage", r"at spec.template."),
        (0, ["object", "spec", "template", "spec"], [], r"at spec.template.spec."),
        (5, ["object", "spec", "jobTemplate"], 1, r"at spec.jobTemplate."),
        (
            5,
            ["object", "spec", "jobTemplate", "spec", "template"],
            "garbage",
            r"at spec.jobTemplate.spec.template.",
        ),
        (0, ["kind"], "Deployment", r"AdmissionRequest has an invalid format"),
        (0, ["operation"], "PATCH", r"AdmissionRequest has an invalid format"),
    ],
)
def test_mutate_malformed_request_echoes_uid(
    client, adm_req_samples, index, keys, value, msg
):
    review = adm_req_samples[index]
    parent = review["request"]
    for key in keys[:-1]:
        parent = parent[key]
    parent[keys[-1]] = value

    response = client.post("/mutate", json=review)
    admission_response = response.get_json()["response"]

    assert response.status_code == 200
    assert admission_response["uid"] == review["request"]["uid"]
    assert admission_response["allowed"] is False
    assert admission_response["status"]["code"] == 400
    assert msg in admission_response["status"]["message"]
    assert "patch" not in admission_response


def test_mutate_empty_body(client):
    response = client.post("/mutate", data=b"")
    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Empty Body"


def test_mutate_patch_error(monkeypatch, client, sample_config, adm_req_samples):
    monkeypatch.setattr(
        sample_config, "_containers", ({"name": "a", "image": "a", "bad": {1}},)
    )
    response = client.post("/mutate", json=adm_req_samples[0])
    admission_response = response.get_json()["response"]

    assert response.status_code == 200
    assert admission_response["allowed"] is False
    assert admission_response["status"]["code"] == 500
    assert "Couldn't serialize JSON patch" in admission_response["status"]["message"]
    assert "patch" not in admission_response


def test_mutate_unknown_error(monkeypatch, client, adm_req_samples):
    def m_should_mutate(namespace, annotations):
        raise KeyError("boom")

    monkeypatch.setattr(fa, "should_mutate", m_should_mutate)
    response = client.post("/mutate", json=adm_req_samples[0])
    admission_response = response.get_json()["response"]

    assert admission_response["allowed"] is False
    assert admission_response["uid"] == adm_req_samples[0]["request"]["uid"]
    assert admission_response["status"] == {
        "code": 500,
        "message": "unknown error. please check the logs.",
    }


def test_mutate_encode_error(monkeypatch, client, adm_req_samples):
    monkeypatch.setattr(
        fa, "admit", lambda body, config: {"response": {"allowed": {True}}}
    )
    response = client.post("/mutate", json=adm_req_samples[0])
    assert response.status_code == 500
    assert "Can't encode response" in response.get_data(as_text=True)


@pytest.mark.parametrize("method", ["GET", "POST"])
@pytest.mark.parametrize("path", ["/health", "/ready"])
def test_probes(client, method, path):
    response = client.open(path, method=method)
    assert response.status_code == 200


def test_mutate_get_not_allowed(client):
    assert client.get("/mutate").status_code == 405


def test_metrics(client, adm_req_samples):
    client.post("/mutate", json=adm_req_samples[0])
    client.post("/mutate", data=b"{not json", content_type="application/json")
    response = client.get("/metrics")
    body = response.get_data(as_text=True)

    assert response.status_code == 200
    assert 'mutate_requests_total{allowed="True",status_code="200"} 1.0' in body
    assert 'mutate_requests_total{allowed="False",status_code="400"} 1.0' in body


def test_create_app_keeps_config(sample_config):
    app = fa.create_app(sample_config)
    assert app.config[fa.CONFIG_KEY] is sample_config
    # apps don't share metric registries
    assert fa.create_app(sample_config).test_client().get("/metrics").status_code == 200


def test_admit(sample_config, adm_req_samples):
    review = fa.admit(json.dumps(adm_req_samples[3]).encode(), sample_config)
    assert review["response"] == {
        "uid": adm_req_samples[3]["request"]["uid"],
        "allowed": True,
    }
