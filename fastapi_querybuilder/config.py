# fastapi_querybuilder/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class QueryBuilderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QUERY_BUILDER_",
        extra="ignore",
    )

    filter_parameter: str = "filter"
    sort_parameter: str = "sort"
    include_parameter: str = "include"
    fields_parameter: str = "fields"

    delimiter: str = ","
    descending_marker: str = "-"


settings = QueryBuilderSettings()
