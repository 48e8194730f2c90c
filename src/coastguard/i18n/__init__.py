"""Localization of alert messages (en, hi, gu)."""

from coastguard.i18n.engine import I18nEngine

__all__ = ["I18nEngine"]
