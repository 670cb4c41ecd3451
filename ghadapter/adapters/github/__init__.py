"""GitHub adapter layer: credentials, pacing-aware execution, pagination."""

from ghadapter.adapters.github.client import GitHubClient
from ghadapter.adapters.github.credential_manager import CredentialManager, build_base_url
from ghadapter.adapters.github.credentials import (
    AppCredential,
    AppIdentity,
    Credential,
    InstallationCredential,
    InstallationToken,
    SignedAssertion,
)
from ghadapter.adapters.github.executor import ApiResponse, RequestDescriptor, RequestExecutor
from ghadapter.adapters.github.factory import create_credential_manager, create_request_executor
from ghadapter.adapters.github.pagination import Page, Paginator, parse_link_header

__all__ = [
    "ApiResponse",
    "AppCredential",
    "AppIdentity",
    "Credential",
    "CredentialManager",
    "GitHubClient",
    "InstallationCredential",
    "InstallationToken",
    "Page",
    "Paginator",
    "RequestDescriptor",
    "RequestExecutor",
    "SignedAssertion",
    "build_base_url",
    "create_credential_manager",
    "create_request_executor",
    "parse_link_header",
]
