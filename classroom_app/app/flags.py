from __future__ import annotations
from typing import Optional
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from . import db
from .models import FeatureFlag

IMPORT_RESILIENCY = "import_resiliency"


class FeatureFlags:
    """Feature flags stored in the ``feature_flags`` table.

    Flags without a row fall back to the defaults passed in (``Config.FEATURE_FLAGS``).
    """

    def __init__(self, defaults: Optional[dict] = None):
        self.defaults = dict(defaults or {})

    def enabled(self, name: str) -> bool:
        row = FeatureFlag.query.filter_by(name=name).first()
        if row is None:
            return bool(self.defaults.get(name, False))
        return bool(row.enabled)

    def enable(self, name: str) -> None:
        self._set(name, True)

    def disable(self, name: str) -> None:
        self._set(name, False)

    def all(self) -> dict:
        flags = {name: bool(value) for name, value in self.defaults.items()}
        for row in FeatureFlag.query.order_by(FeatureFlag.name).all():
            flags[row.name] = bool(row.enabled)
        return flags

    def _set(self, name: str, enabled: bool) -> None:
        row = FeatureFlag.query.filter_by(name=name).first()
        if row is None:
            row = FeatureFlag(name=name)
        row.enabled = enabled
        try:
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("failed to update feature flag %s", name)
            raise
        current_app.logger.info("feature flag %s %s", name, "enabled" if enabled else "disabled")
