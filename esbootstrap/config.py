"""
esbootstrap configuration

We read configuration from 2 sources, in order of precedence (higher is more priority)
- Environment variables
- A .env file, either in the current working directory or in a location specified
  by the ESBOOTSTRAP_ENV_FILE environment variable
"""

import functools
import os
from pathlib import Path
from typing import Annotated, Any

from dotenv import dotenv_values
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "esbootstrap_"


class Settings(BaseSettings):
    env_file: Annotated[
        Path,
        Field(
            description="Location of a .env file (if used) relative to working directory",
        ),
    ] = Path(".env")

    elastic_password: Annotated[
        str | None,
        Field(
            description=(
                "Elasticsearch password. This the password for the elastic_username user when Elastic xpack "
                "security is enabled"
            )
        ),
    ] = None

    elastic_username: Annotated[str, Field(description="Elasticsearch user (only used if elastic_password is set)")] = (
        "elastic"
    )

    elastic_host: Annotated[
        str | None,
        Field(
            description=(
                "Elasticsearch host. "
                "Default: https://localhost:9200 if elastic_password is set, http://localhost:9200 otherwise"
            )
        ),
    ] = None

    elastic_verify_ssl: Annotated[
        bool | None,
        Field(
            description=(
                "Elasticsearch verify SSL (only used if elastic_password is set). Default: True unless host is localhost)"
            ),
        ),
    ] = None

    number_of_shards: Annotated[int, Field(ge=1, description="Number of primary shards for every created index")] = 3

    scripts_dir: Annotated[
        Path,
        Field(
            description="Directory holding painless reindex scripts, laid out as <alias>/<suffix>",
        ),
    ] = Path("migrations")

    clone_timeout: Annotated[int, Field(ge=1, description="Seconds to wait for an index clone")] = 600
    freeze_timeout: Annotated[int, Field(ge=1, description="Seconds to wait for an index to become read-only")] = 120
    unfreeze_timeout: Annotated[int, Field(ge=1, description="Seconds to wait for an index to become writable")] = 60
    reindex_timeout: Annotated[int, Field(ge=1, description="Seconds to wait for a reindex to complete")] = 600

    geometry_types: Annotated[
        list[str],
        Field(description="Fully qualified nested type names that are stored as geo_shape"),
    ] = ["geo.Data"]

    timestamp_types: Annotated[
        list[str],
        Field(description="Fully qualified nested type names that are stored as date"),
    ] = ["google.protobuf.Timestamp"]

    @model_validator(mode="after")
    def set_ssl(self: Any) -> "Settings":
        if not self.elastic_host:
            self.elastic_host = ("https" if self.elastic_password else "http") + "://localhost:9200"
        if self.elastic_verify_ssl is None:
            self.elastic_verify_ssl = self.elastic_host not in {
                "http://localhost:9200",
                "https://localhost:9200",
            }
        return self

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)


@functools.lru_cache()
def get_settings() -> Settings:
    # Read the settings once to find the env_file, then load it without overriding real environment variables
    temp = Settings()
    load_env_file(temp.env_file)
    return Settings()


def load_env_file(env_file: Path) -> None:
    """
    Put the values of the env file in the environment, unless the variable is already set.
    Settings read environment variables case-insensitively, so the keys are compared (and set) in upper case.
    """
    present = {key.upper() for key in os.environ}
    for key, value in dotenv_values(env_file).items():
        if value is not None and key.upper() not in present:
            os.environ[key.upper()] = value


if __name__ == "__main__":
    # Echo the settings
    for k, v in get_settings().model_dump().items():
        print(f"{ENV_PREFIX.upper()}{k.upper()}={v}")
