from __future__ import annotations

import uuid
from datetime import datetime, timezone

from ..errors import AppError, classify_store_error
from ..infrastructure.aws_errors import StoreError, StoreSignal


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_id() -> str:
    return str(uuid.uuid4())


def reclassify(exc: Exception, *, condition_failed: AppError | None = None) -> AppError:
    """
    Map a store failure to the taxonomy using the caller's intent.

    ``condition_failed`` is what a failed condition means for this write
    (Conflict for create-if-absent, NotFound for update/delete-if-exists).
    """
    if (
        condition_failed is not None
        and isinstance(exc, StoreError)
        and exc.signal is StoreSignal.CONDITIONAL_CHECK_FAILED
    ):
        return condition_failed
    return classify_store_error(exc)
