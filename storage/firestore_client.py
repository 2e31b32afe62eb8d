from __future__ import annotations

from google.cloud import firestore
from config.settings import settings


def get_firestore_client() -> firestore.Client:
    # Empty FIRESTORE_PROJECT_ID lets the library resolve the ADC default project.
    if settings.FIRESTORE_PROJECT_ID:
        return firestore.Client(project=settings.FIRESTORE_PROJECT_ID)
    return firestore.Client()
