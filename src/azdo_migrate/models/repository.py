"""Repository catalog models."""

from pydantic import BaseModel, ConfigDict, Field


class Scope(BaseModel):
    """Organization/project pair identifying a repository catalog."""

    model_config = ConfigDict(frozen=True)

    organization: str = Field(..., description='Organization name')
    project: str = Field(..., description='Project name')

    def __str__(self) -> str:
        return f'{self.organization}/{self.project}'


class RepositoryDescriptor(BaseModel):
    """Azure DevOps Git repository as listed by the catalog API.

    The API returns ``remoteUrl`` and ``webUrl``; both the API spelling and
    the attribute names are accepted on construction.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='ignore')

    name: str = Field(..., description='Repository name, unique within a scope')
    clone_url: str = Field(default='', alias='remoteUrl', description='Clone URL')
    web_url: str = Field(default='', alias='webUrl', description='Web URL')
