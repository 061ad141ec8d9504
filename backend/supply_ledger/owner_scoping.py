from __future__ import annotations

from typing import Type

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria

from . import orm_models
from .errors import ErrorKind, ServiceError, not_found

TARGET_MODELS = orm_models.OWNED_MODELS


def current_user_id(session: Session) -> str | None:
    return session.info.get("user_id")


def bind_user(session: Session, user_id: str) -> None:
    session.info["user_id"] = user_id


def setup_owner_events(session_cls: Type[Session]) -> None:
    @event.listens_for(session_cls, "do_orm_execute")
    def _add_owner_filter(execute_state):  # type: ignore[unused-variable]
        if not execute_state.is_select:
            return
        user_id = execute_state.session.info.get("user_id")
        if not user_id:
            return

        statement = execute_state.statement
        for model in TARGET_MODELS:
            statement = statement.options(
                with_loader_criteria(
                    model,
                    lambda cls: cls.user_id == user_id,
                    include_aliases=True,
                )
            )
        execute_state.statement = statement

    @event.listens_for(session_cls, "before_flush")
    def _inject_owner(session, flush_context, instances):  # type: ignore[unused-variable]
        user_id = session.info.get("user_id")
        if not user_id:
            return
        for obj in session.new:
            if isinstance(obj, TARGET_MODELS) and not getattr(obj, "user_id", None):
                obj.user_id = user_id

    @event.listens_for(session_cls, "loaded_as_persistent")
    def _validate_owner(session, obj):  # type: ignore[unused-variable]
        user_id = session.info.get("user_id")
        if user_id is None or not isinstance(obj, TARGET_MODELS):
            return
        if obj.user_id and obj.user_id != user_id:
            session.expunge(obj)


def require_user_id(session: Session) -> str:
    user_id = current_user_id(session)
    if not user_id:
        raise ServiceError(ErrorKind.UNAUTHORIZED, "Користувача не визначено")
    return user_id


def get_owned(session: Session, model, entity_id: str, entity: str):
    """Load one owned row by id or raise ``NotFound``."""
    user_id = require_user_id(session)
    obj = (
        session.query(model)
        .filter(model.id == entity_id, model.user_id == user_id)
        .one_or_none()
    )
    if obj is None:
        raise not_found(entity, entity_id)
    return obj
