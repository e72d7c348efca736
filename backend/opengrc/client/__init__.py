"""Async client and UI-neutral screen controllers for the OpenGRC API."""
from opengrc.client.api import ApiClient, ApiError, CredentialStore, Credentials
from opengrc.client.detail_sheet import DetailSheet, Relation, SheetState
from opengrc.client.global_search import GlobalSearch
from opengrc.client.hooks import Mutation, Resource, ResourceCache
from opengrc.client.integration_viewer import IntegrationViewer
from opengrc.client.list_view import ListView
from opengrc.client.selector import RelationshipSelector

__all__ = [
    "ApiClient", "ApiError", "CredentialStore", "Credentials",
    "DetailSheet", "Relation", "SheetState",
    "GlobalSearch",
    "Mutation", "Resource", "ResourceCache",
    "IntegrationViewer",
    "ListView",
    "RelationshipSelector",
]
