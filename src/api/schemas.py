# src/api/schemas.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DetectedFrameworkOut(CamelModel):
    type: str
    version: str = ""


class RepositoryConfigOut(CamelModel):
    repository_id: str
    test_frameworks: List[DetectedFrameworkOut] = Field(default_factory=list)
    test_folder_patterns: Dict[str, List[str]] = Field(default_factory=dict)
    test_file_naming_convention: Dict[str, List[str]] = Field(default_factory=dict)
    coverage_folder_path: Optional[str] = None
    user_test_folder_preference: Optional[Any] = None
    test_type_handling: Optional[Dict[str, str]] = None
    feature_domain_based_test: bool = False
    external_test_repo: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ScanSubmitted(BaseModel):
    job_id: str
    status: str
    message: str = "Scan job enqueued"


class FolderPreferenceRequest(BaseModel):
    preference: Optional[Any] = Field(None, description="User-chosen test folder layout; null clears it")
