"""
Request dependencies.

Services are built once in the application lifespan and kept on
``app.state``; routes receive them through these getters so tests can
swap them with ``app.dependency_overrides``.
"""

from fastapi import Request

from reelrecall.services.notifier import Notifier
from reelrecall.services.rag.generator import AnswerGenerator
from reelrecall.services.rag.search_service import SearchService
from reelrecall.services.vector_store.base import VectorStore
from reelrecall.tasks.ingestion_queue import IngestionJobQueue


def get_ingestion_queue(request: Request) -> IngestionJobQueue:
    return request.app.state.ingestion_queue


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def get_answer_generator(request: Request) -> AnswerGenerator:
    return request.app.state.answer_generator


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_vector_store(request: Request) -> VectorStore:
    return request.app.state.vector_store
