from abc import ABC, abstractmethod
from copy import deepcopy
from os import PathLike
from pathlib import Path
from typing import Any, Dict, Generator, List, Mapping

import typepigeon
import yaml


class Configuration(ABC, Mapping):
    fields: Dict[str, type]
    defaults: Dict[str, Any] = None
    required: List[str] = None

    def __init__(self, **configuration):
        self.__configuration = {field: None for field in self.fields}
        if len(configuration) > 0:
            self.update(configuration)

        if self.defaults is not None:
            update_none(self.__configuration, deepcopy(self.defaults))

        if self.required is not None:
            missing_fields = [
                field for field in self.required if self.__configuration.get(field) is None
            ]
            if len(missing_fields) > 0:
                raise ValueError(
                    f'missing {len(missing_fields)} fields required by "{self.__class__.__name__}" - {list(missing_fields)}'
                )

    @classmethod
    def from_file(cls, filename: PathLike) -> 'Configuration':
        raise NotImplementedError()

    def __contains__(self, key: str) -> bool:
        return key in self.__configuration

    def __getitem__(self, key: str) -> Any:
        return self.__configuration[key]

    def __setitem__(self, key: str, value: Any):
        if key in self.fields:
            value = convert_field(value, self.fields[key])
        self.__configuration[key] = value

    def update(self, other: Mapping):
        for key, value in other.items():
            if key in self and isinstance(self[key], Configuration) and value is not None:
                self[key].update(value)
            else:
                self[key] = value

    def __eq__(self, other: 'Configuration') -> bool:
        return other._Configuration__configuration == self.__configuration

    def __repr__(self):
        configuration = ', '.join(
            [f'{key}={repr(value)}' for key, value in self.__configuration.items()]
        )
        return f'{self.__class__.__name__}({configuration})'

    def __len__(self) -> int:
        return len(self.__configuration)

    def __iter__(self) -> Generator:
        yield from self.__configuration

    def to_dict(self) -> Dict[str, Any]:
        return {key: to_primitive(value) for key, value in self.__configuration.items()}

    @abstractmethod
    def to_file(self, filename: PathLike = None, overwrite: bool = False):
        raise NotImplementedError()


class ConfigurationYAML(Configuration):
    @classmethod
    def from_file(cls, filename: PathLike) -> 'Configuration':
        # JSON documents are valid YAML
        with open(Path(filename).expanduser()) as input_file:
            configuration = yaml.safe_load(input_file)
        if configuration is None:
            configuration = {}
        return cls(**configuration)

    def to_file(self, filename: PathLike = None, overwrite: bool = True):
        if not isinstance(filename, Path):
            filename = Path(filename)
        if overwrite or not filename.exists():
            with open(filename, 'w') as output_file:
                yaml.safe_dump(self.to_dict(), output_file, sort_keys=False)


def convert_field(value: Any, field_type: Any) -> Any:
    """
    convert the given value to the type declared for a configuration field

    :param value: raw value, usually from YAML
    :param field_type: type, `[type]` for lists, or a mapping of subfield types
    :return: converted value
    """

    if value is None:
        return None
    if isinstance(field_type, type) and issubclass(field_type, Configuration):
        if isinstance(value, field_type):
            return value
        return field_type(**value)
    if isinstance(field_type, list):
        if isinstance(value, str):
            value = [entry.strip() for entry in value.split(',') if len(entry.strip()) > 0]
        return [convert_field(entry, field_type[0]) for entry in value]
    if isinstance(field_type, Mapping):
        return {
            key: convert_field(entry, field_type[key]) if key in field_type else entry
            for key, entry in value.items()
        }
    if isinstance(field_type, type) and isinstance(value, field_type):
        return value
    return typepigeon.convert_value(value, field_type)


def to_primitive(value: Any) -> Any:
    if isinstance(value, Configuration):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {key: to_primitive(entry) for key, entry in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_primitive(entry) for entry in value]
    if isinstance(value, Path):
        return str(value)
    return value


def update_none(values: Dict[str, Any], defaults: Dict[str, Any]):
    for key, default_value in defaults.items():
        if key not in values or values[key] is None:
            values[key] = default_value
        elif isinstance(values[key], Mapping) and isinstance(default_value, Mapping):
            update_none(values[key], default_value)
