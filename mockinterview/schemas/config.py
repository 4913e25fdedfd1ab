from pydantic import Field

from mockinterview.schemas.base import CamelModel


class AppConfig(CamelModel):
    """API credentials saved through /api/config."""

    gemini_api_key: str | None = None
    # wire name kept for existing clients; holds the database URI
    database_uri: str | None = Field(default=None, alias="mongodbUri")
    eleven_labs_api_key: str | None = None

    def missing_fields(self) -> list[str]:
        return [
            name
            for name, value in (
                ("geminiApiKey", self.gemini_api_key),
                ("mongodbUri", self.database_uri),
                ("elevenLabsApiKey", self.eleven_labs_api_key),
            )
            if not value
        ]

    def is_complete(self) -> bool:
        return not self.missing_fields()
