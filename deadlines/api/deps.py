"""
Request dependencies that hand out the objects built by the app factory
"""
from fastapi import Request

from deadlines.config import Settings
from deadlines.services.queue import SignatureVerifier, TaskDispatcher


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_dispatcher(request: Request) -> TaskDispatcher:
    return request.app.state.dispatcher


def get_signature_verifier(request: Request) -> SignatureVerifier:
    return request.app.state.signature_verifier
