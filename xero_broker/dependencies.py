"""
FastAPI dependencies for the services built once in main.create_app() and kept on app.state.
"""
from typing import Annotated

from fastapi import Depends, Request

from xero_broker.config import Settings
from xero_broker.exchange import ExchangeCoordinator
from xero_broker.token_store import TokenStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_store(request: Request) -> TokenStore:
    return request.app.state.token_store


def get_coordinator(request: Request) -> ExchangeCoordinator:
    return request.app.state.coordinator


SettingsDep = Annotated[Settings, Depends(get_settings)]
TokenStoreDep = Annotated[TokenStore, Depends(get_token_store)]
CoordinatorDep = Annotated[ExchangeCoordinator, Depends(get_coordinator)]
