"""Requests handled by the linked file importers."""

from __future__ import annotations

from dataclasses import dataclass, field

from overleaf_web.core.errors import ValidationError
from overleaf_web.models.entities import (
    LINKED_FILE_PROVIDERS,
    PROVIDER_PROJECT_FILE,
    PROVIDER_PROJECT_OUTPUT_FILE,
    PROVIDER_URL,
    FileRef,
    LinkedFileData,
)
from overleaf_web.models.paths import (
    validate_build_id,
    validate_filename,
    validate_path,
    validate_url,
)


@dataclass(slots=True)
class LinkedFileParameter:
    """Provider coordinates; which ones are required depends on the provider."""

    url: str = ""
    source_project_id: str = ""
    source_entity_path: str = ""
    source_output_file_path: str = ""
    build_id: str = ""
    clsi_server_id: str = ""


@dataclass(slots=True)
class CreateLinkedFileRequest:
    user_id: str
    project_id: str
    parent_folder_id: str
    name: str
    provider: str
    parameter: LinkedFileParameter = field(default_factory=LinkedFileParameter)

    def validate(self) -> None:
        validate_provider(self.provider)
        validate_filename(self.name)
        parameter = self.parameter
        if self.provider == PROVIDER_URL:
            if not parameter.url:
                raise ValidationError("missing url")
            validate_url(parameter.url)
        elif self.provider == PROVIDER_PROJECT_FILE:
            if not parameter.source_project_id:
                raise ValidationError("missing source_project_id")
            _validate_field("source_entity_path", validate_path, parameter.source_entity_path)
        else:
            if not parameter.source_project_id:
                raise ValidationError("missing source_project_id")
            _validate_field("source_output_file_path", validate_path, parameter.source_output_file_path)
            _validate_field("build_id", validate_build_id, parameter.build_id)

    def linked_file_data(self) -> LinkedFileData:
        if self.provider == PROVIDER_URL:
            return LinkedFileData(provider=self.provider, url=self.parameter.url)
        if self.provider == PROVIDER_PROJECT_FILE:
            return LinkedFileData(
                provider=self.provider,
                source_project_id=self.parameter.source_project_id,
                source_entity_path=self.parameter.source_entity_path,
            )
        return LinkedFileData(
            provider=self.provider,
            source_project_id=self.parameter.source_project_id,
            source_output_file_path=self.parameter.source_output_file_path,
        )


@dataclass(slots=True)
class RefreshLinkedFileRequest:
    user_id: str
    project_id: str
    file_id: str
    # Resolved from the project tree before the provider runs.
    parent_folder_id: str = ""
    file: FileRef | None = None


def validate_provider(provider: str) -> None:
    if provider not in LINKED_FILE_PROVIDERS:
        raise ValidationError("unknown provider")


def _validate_field(name: str, check, value: str) -> None:
    try:
        check(value)
    except ValidationError as exc:
        raise ValidationError(f"{name}: {exc}") from exc


__all__ = [
    "LinkedFileParameter",
    "CreateLinkedFileRequest",
    "RefreshLinkedFileRequest",
    "validate_provider",
    "PROVIDER_URL",
    "PROVIDER_PROJECT_FILE",
    "PROVIDER_PROJECT_OUTPUT_FILE",
]
