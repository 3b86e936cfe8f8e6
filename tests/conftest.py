import json
import os
from contextlib import contextmanager

import pytest

import initinjector.config as co
import initinjector.flask_application as fa


"""
This file is used for sharing fixtures across all other test files.
https://docs.pytest.org/en/stable/fixture.html#scope-sharing-fixtures-across-classes-modules-packages-or-session
"""

DATA_DIR = os.path.join(os.path.dirname(os.path.realpath(__file__)), "data")
CONFIG_DIR = os.path.join(DATA_DIR, "config")


@contextmanager
def no_exc():
    yield


def get_json(path):
    with open(path, "r") as file:
        return json.load(file)


def get_admreq(adm_type):
    try:
        return get_json(
            os.path.join(
                DATA_DIR, "sample_admission_requests", f"ad_request_{adm_type}.json"
            )
        )
    except FileNotFoundError:
        return None


def get_config(name):
    return co.InjectionConfig(os.path.join(CONFIG_DIR, f"{name}.yaml"), CONFIG_DIR)


@pytest.fixture
def adm_req_samples():
    return [
        get_admreq(t)
        for t in (
            "deployments",
            "deployments_init_containers",
            "kube_system",
            "no_annotation",
            "pods",
            "cronjob",
            "invalid",
            "wrong_version",
            "invalid_object",
        )
    ]


@pytest.fixture
def sample_config():
    return get_config("sample_config")


@pytest.fixture
def sample_config_volumes():
    return get_config("sample_config_volumes")


@pytest.fixture
def client(sample_config):
    return fa.create_app(sample_config).test_client()
