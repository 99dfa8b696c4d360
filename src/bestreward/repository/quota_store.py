from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from bestreward.domain.errors import QuotaConflictError
from bestreward.domain.models import QuotaKey, QuotaState
from bestreward.repository.db import QuotaRow


def _to_state(row: QuotaRow) -> QuotaState:
    return QuotaState(
        reward_config_id=row.reward_config_id,
        payment_method_id=row.payment_method_id or None,
        used_amount=row.used_amount,
        current_amount=row.current_amount,
        last_refresh_marker=row.last_refresh_marker,
        version=row.version,
    )


class QuotaStore:
    """Quota rows with optimistic concurrency.

    A state read from here carries the row ``version``; ``version == 0`` means
    no row exists yet. :meth:`save` writes each change as one conditional
    ``UPDATE`` (or a unique-keyed ``INSERT``) and raises
    :class:`QuotaConflictError` if another writer got there first. All changes
    passed to one ``save`` call commit or roll back together.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, key: QuotaKey) -> QuotaState | None:
        with self._session_factory() as session:
            row = session.scalars(
                select(QuotaRow).where(
                    QuotaRow.reward_config_id == key.reward_config_id,
                    QuotaRow.payment_method_id == (key.payment_method_id or ""),
                )
            ).one_or_none()
            return _to_state(row) if row is not None else None

    def list_all(self) -> list[QuotaState]:
        with self._session_factory() as session:
            rows = session.scalars(select(QuotaRow).order_by(QuotaRow.id)).all()
            return [_to_state(row) for row in rows]

    def _write(self, session: Session, state: QuotaState) -> QuotaState:
        payment_key = state.payment_method_id or ""
        if state.version == 0:
            session.add(
                QuotaRow(
                    reward_config_id=state.reward_config_id,
                    payment_method_id=payment_key,
                    used_amount=state.used_amount,
                    current_amount=state.current_amount,
                    last_refresh_marker=state.last_refresh_marker,
                    version=1,
                )
            )
            session.flush()
            return state.model_copy(update={"version": 1})

        result = session.execute(
            update(QuotaRow)
            .where(
                QuotaRow.reward_config_id == state.reward_config_id,
                QuotaRow.payment_method_id == payment_key,
                QuotaRow.version == state.version,
            )
            .values(
                used_amount=state.used_amount,
                current_amount=state.current_amount,
                last_refresh_marker=state.last_refresh_marker,
                version=QuotaRow.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise QuotaConflictError(
                f"quota {state.reward_config_id}/{state.payment_method_id} changed since version {state.version}"
            )
        return state.model_copy(update={"version": state.version + 1})

    def save(self, states: list[QuotaState]) -> list[QuotaState]:
        """Persist new states. Each state's ``version`` must be the version it was derived from."""
        try:
            with self._session_factory() as session, session.begin():
                saved = [self._write(session, state) for state in states]
        except IntegrityError as exc:
            logger.warning("Quota insert lost a race: {}", exc.orig)
            raise QuotaConflictError("quota row was created concurrently") from exc
        except QuotaConflictError as exc:
            logger.warning("{}", exc)
            raise
        return saved
