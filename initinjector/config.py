import collections
import copy
import hashlib
import logging
import os

import yaml

from initinjector.exceptions import (
    InvalidConfigurationFormatError,
    InvalidImageFormatError,
    NotFoundException,
)
from initinjector.image import Image
from initinjector.util import safe_path_func, validate_schema


class InjectionConfig:
    """
    Config object that contains the init containers and volumes to inject.

    The configuration is read once and kept as an immutable snapshot. Both
    `containers` and `volumes` hand out fresh copies, so callers can't alter
    what concurrent requests see.
    """

    __SCHEMA = "config_schema.json"

    def __init__(self, path: str, base_dir: str = None):
        """
        Read the YAML configuration at `path`, validate its contents and store
        them.

        Raise `NotFoundException` if the configuration file is empty.

        Raise `InvalidConfigurationFormatError` if the configuration file has an
        invalid format.
        """
        base_dir = base_dir or os.path.dirname(os.path.realpath(path))
        with safe_path_func(open, base_dir, path, "rb") as configfile:
            data = configfile.read()

        try:
            config = yaml.safe_load(data)
        except yaml.YAMLError as err:
            msg = "Init container configuration {path} is not valid YAML: {err}"
            raise InvalidConfigurationFormatError(
                message=msg, path=path, err=str(err)
            ) from err

        if not config:
            msg = "Error loading init container configuration file {path}."
            raise NotFoundException(message=msg, path=path)

        self.__validate(config)

        self._containers = tuple(copy.deepcopy(config.get("containers") or []))
        self._volumes = tuple(copy.deepcopy(config.get("volumes") or []))
        self.digest = hashlib.sha256(data).hexdigest()
        logging.info(
            "loaded init container configuration: sha256sum %s",
            self.digest,
            extra={
                "containers": self.container_names,
                "volumes": [volume["name"] for volume in self._volumes],
            },
        )

    def __validate(self, config: dict):
        validate_schema(
            config,
            self.__SCHEMA,
            "Init container configuration",
            InvalidConfigurationFormatError,
        )
        names = [container["name"] for container in config.get("containers") or []]
        duplicates = [
            name for name, count in collections.Counter(names).items() if count > 1
        ]
        if duplicates:
            msg = "Duplicate init container names {names}."
            raise InvalidConfigurationFormatError(message=msg, names=duplicates)

        for container in config.get("containers") or []:
            try:
                Image(container["image"])
            except InvalidImageFormatError as err:
                msg = "Init container {name} has an invalid image {image}."
                raise InvalidConfigurationFormatError(
                    message=msg, name=container["name"], image=container["image"]
                ) from err

    @property
    def containers(self) -> list:
        return copy.deepcopy(list(self._containers))

    @property
    def volumes(self) -> list:
        return copy.deepcopy(list(self._volumes))

    @property
    def container_names(self) -> list:
        return [container["name"] for container in self._containers]
