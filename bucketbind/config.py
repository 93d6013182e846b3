from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from bucketbind.errors import ConfigurationError

ENDPOINT = "endpoint"
ACCESS_KEY = "accessKey"
SECRET_KEY = "secretKey"
BUCKET = "bucket"
REGION = "region"
SSL = "ssl"

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def property_to_bool(props: Mapping[str, str], key: str) -> bool:
    """Read a boolean property; absent or unparsable values are ``False``."""
    value = props.get(key)
    if value is None or value in _FALSE:
        return False
    return value in _TRUE


def _required(props: Mapping[str, str], key: str) -> str:
    value = props.get(key)
    if not value:
        raise ConfigurationError(f"missing {key} string")
    return value


@dataclass(frozen=True)
class BindingConfig:
    endpoint: str
    access_key: str
    secret_key: str
    bucket: str
    region: str = ""
    ssl: bool = False

    @classmethod
    def from_properties(cls, props: Mapping[str, str]) -> BindingConfig:
        return cls(
            endpoint=_required(props, ENDPOINT),
            access_key=_required(props, ACCESS_KEY),
            secret_key=_required(props, SECRET_KEY),
            bucket=_required(props, BUCKET),
            region=props.get(REGION, ""),
            ssl=property_to_bool(props, SSL),
        )

    def __repr__(self) -> str:
        return (
            f"BindingConfig(endpoint={self.endpoint!r}, bucket={self.bucket!r}, "
            f"region={self.region!r}, ssl={self.ssl!r})"
        )
