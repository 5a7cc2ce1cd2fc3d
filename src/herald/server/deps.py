"""Request dependencies resolving components from app state."""

from typing import Annotated

from fastapi import Depends, Request

from herald.app import Components
from herald.auth import CredentialStore, SlackOAuthClient
from herald.scheduling import SchedulingService
from herald.slack import MessageTransport


def get_components(request: Request) -> Components:
    return request.app.state.components


ComponentsDep = Annotated[Components, Depends(get_components)]


def get_service(components: ComponentsDep) -> SchedulingService:
    return components.service


def get_transport(components: ComponentsDep) -> MessageTransport:
    return components.transport


def get_credentials(components: ComponentsDep) -> CredentialStore:
    return components.credentials


def get_oauth(components: ComponentsDep) -> SlackOAuthClient:
    return components.oauth


ServiceDep = Annotated[SchedulingService, Depends(get_service)]
TransportDep = Annotated[MessageTransport, Depends(get_transport)]
CredentialsDep = Annotated[CredentialStore, Depends(get_credentials)]
OAuthDep = Annotated[SlackOAuthClient, Depends(get_oauth)]
