"""
Credentials model: every secret or identifier needed to authenticate
against the ingestion API.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Credentials(BaseModel):
    """
    Project credentials for one import run.

    Attributes:
        acct: Service account username
        password: Service account secret (accepted as "pass" too)
        project: Numeric project id, required with a service account
        secret: Project API secret
        token: Project token
        bearer: OAuth bearer token
        lookup_table_id: Target table id for lookup-table imports
        group_key: Group key injected into group profile records
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "acct": "import-bot.abc123.mp-service-account",
                "pass": "s3cr3t",
                "project": "2943452",
            }
        },
    )

    acct: str = ""
    password: str = Field(default="", validation_alias=AliasChoices("password", "pass"))
    project: str = ""
    secret: str = ""
    token: str = ""
    bearer: str = ""
    lookup_table_id: str = Field(
        default="", validation_alias=AliasChoices("lookup_table_id", "lookupTableId")
    )
    group_key: str = Field(default="", validation_alias=AliasChoices("group_key", "groupKey"))

    @field_validator("*", mode="before")
    @classmethod
    def stringify(cls, value):
        """Project ids and table ids often arrive as integers."""
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def has_service_account(self) -> bool:
        return bool(self.acct and self.password and self.project)

    def redacted(self) -> dict[str, str]:
        """Credential fields with every secret value masked, for logging."""
        masked = {}
        for name, value in self.model_dump().items():
            if name in ("password", "secret", "token", "bearer") and value:
                masked[name] = value[:2] + "***"
            else:
                masked[name] = value
        return masked
