"""FastAPI dependencies shared by the routers.

Long-lived collaborators (artifact store, broadcaster) hang off ``app.state``
and are injected per request, so tests swap them via ``dependency_overrides``.
"""
from fastapi import Depends, Request

from .certificate_gate import CertificateGate
from .completion import CompletionRecorder
from .db import get_db


def get_database():
    return get_db()


def get_artifact_store(request: Request):
    return request.app.state.artifact_store


def get_broadcaster(request: Request):
    return request.app.state.broadcaster


def get_completion_recorder(db=Depends(get_database), store=Depends(get_artifact_store)):
    return CompletionRecorder(db, store)


def get_certificate_gate(db=Depends(get_database), store=Depends(get_artifact_store)):
    return CertificateGate(db, store)
